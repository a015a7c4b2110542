"""Core data models — shared Pydantic types for the SchoolHub platform.

Every tenant, class, roster entry, content item, exam and result flows
through these types. They are the shared vocabulary between the entity
store, the engine services and the HTTP layer.

Persistence is document-shaped: each record is stored as its model_dump()
dict in the collection named by ``Collection``. Records carry their
tenant-scoping foreign key(s) directly, so a sweep by ``tenant_id`` reaches
everything a tenant owns.

This is a Tier 1 leaf module: it imports only from pydantic and the stdlib.
No project imports allowed — everything else imports from here.

Usage:
    from schoolhub.schemas import Board, Collection, Student, Tenant
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# ---------------------------------------------------------------------------
# Boards — the one authoritative enumeration
# ---------------------------------------------------------------------------


class Board(str, Enum):
    """Curriculum/region codes. Two curricula × two regions, closed set.

    Every validation site consults this enum. Boards are a shared catalog,
    never owned by a tenant.
    """

    CBSE_AP = "CBSE_AP"
    CBSE_TS = "CBSE_TS"
    STATE_AP = "STATE_AP"
    STATE_TS = "STATE_TS"

    @classmethod
    def parse(cls, value: "str | Board") -> "Board":
        """Parses a board code case-insensitively.

        Raises:
            ValueError: If the value is not one of the four board codes.
        """
        if isinstance(value, Board):
            return value
        normalized = str(value).strip().upper()
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(b.value for b in cls)
            raise ValueError(
                f"Invalid board code: {value!r}. Valid options: {valid}"
            ) from None


BOARD_NAMES: dict[Board, str] = {
    Board.CBSE_AP: "CBSE Andhra Pradesh",
    Board.CBSE_TS: "CBSE Telangana State",
    Board.STATE_AP: "State Andhra Pradesh",
    Board.STATE_TS: "State Telangana State",
}


class Collection(str, Enum):
    """Collection names in the entity store — one per entity type."""

    TENANTS = "tenants"
    SUBJECTS = "subjects"
    CLASSES = "classes"
    TEACHERS = "teachers"
    STUDENTS = "students"
    VIDEOS = "videos"
    ASSESSMENTS = "assessments"
    CONTENTS = "contents"
    EXAMS = "exams"
    QUESTIONS = "questions"
    EXAM_RESULTS = "exam_results"
    STREAMS = "streams"


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _lower_email(value: Any) -> Any:
    """Trims and lower-cases an email before EmailStr checks its shape."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


# ---------------------------------------------------------------------------
# Base record
# ---------------------------------------------------------------------------


class Record(BaseModel):
    """Common fields for every persisted document.

    ``id`` is an opaque string. Callers must not infer meaning from its
    shape. The stub uses uuid4 hex; a real store may use anything else.
    """

    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------


class Tenant(Record):
    """A school administrator, the unit of data isolation.

    board and school_name may be empty at creation, but both must be set
    before the tenant can create classes or students.
    """

    email: EmailStr
    full_name: str = ""
    board: Board | None = None
    school_name: str = ""
    is_active: bool = True
    password_hash: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> Any:
        return _lower_email(value)


class Subject(Record):
    """Board-wide subject, shared by every tenant on that board.

    Unique on (name, board). Created by the super-tenant only.
    """

    name: str
    board: Board
    class_number: str | None = None
    code: str | None = None
    description: str = ""
    is_active: bool = True


class SchoolClass(Record):
    """One section of one grade inside a tenant.

    (class_number, section, tenant_id) is unique. assigned_subjects is kept
    identical across all sections that share a class_number.
    """

    class_number: str
    section: str
    tenant_id: str
    board: Board | None = None
    school: str = ""
    name: str = ""
    assigned_subjects: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("section")
    @classmethod
    def _validate_section(cls, value: str) -> str:
        section = value.strip().upper()
        if len(section) != 1 or not section.isalpha():
            raise ValueError(f"Section must be a single letter, got {value!r}")
        return section

    @property
    def label(self) -> str:
        return f"{self.class_number}-{self.section}"


class Teacher(Record):
    """A teacher inside one tenant.

    assigned_class_ids holds encoded class references (see engine.refs).
    Legacy rows may hold bare document ids or class-number strings. They
    are normalized on read, never compared raw.
    """

    email: EmailStr
    full_name: str
    tenant_id: str
    phone: str = ""
    board: Board | None = None
    school_name: str = ""
    subjects: list[str] = Field(default_factory=list)
    assigned_class_ids: list[str] = Field(default_factory=list)
    is_active: bool = True
    password_hash: str = ""

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> Any:
        return _lower_email(value)


class Student(Record):
    """A student inside one tenant.

    board is inherited from the tenant when absent and backfilled on first
    resolution (engine.inheritance).
    """

    email: EmailStr
    full_name: str
    tenant_id: str | None = None
    phone: str = ""
    board: Board | None = None
    school_name: str = ""
    class_id: str | None = None
    class_number: str = "Unassigned"
    section: str | None = None
    assigned_subjects: list[str] = Field(default_factory=list)
    is_active: bool = True
    password_hash: str = ""
    must_reset_password: bool = False

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> Any:
        return _lower_email(value)


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class Video(Record):
    """Teacher-authored video. subject_ref is a raw identifier.

    Historical rows may store the subject's id, a differently-cased id
    string, or the subject's name. engine.refs resolves all three.
    """

    title: str
    tenant_id: str
    created_by: str
    subject_ref: str
    description: str = ""
    video_url: str = ""
    duration: int = 0
    is_published: bool = True
    is_active: bool = True


class Assessment(Record):
    """Teacher-authored assessment covering one or more subjects."""

    title: str
    tenant_id: str
    created_by: str
    subject_refs: list[str] = Field(default_factory=list)
    description: str = ""
    question_count: int = 0
    is_published: bool = True
    is_active: bool = True


class Content(Record):
    """Super-tenant exclusive content, scoped to a board, not a tenant."""

    title: str
    board: Board
    subject_id: str
    content_type: Literal["video", "pdf", "ppt", "note", "other"]
    file_url: str
    description: str = ""
    topic: str = ""
    thumbnail_url: str = ""
    duration: int = 0
    is_exclusive: bool = True
    is_active: bool = True


class Exam(Record):
    """An exam. created_by_role decides tenancy.

    admin exams carry the author's tenant id; super-admin exams carry none
    and are visible board-wide.
    """

    title: str
    board: Board
    created_by: str
    created_by_role: Literal["admin", "super-admin"] = "admin"
    tenant_id: str | None = None
    description: str = ""
    exam_type: Literal["weekend", "mains", "advanced", "practice"] = "weekend"
    duration: int = 60
    total_questions: int = 0
    total_marks: int = 100
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True


class Question(Record):
    exam_id: str
    tenant_id: str | None = None
    text: str
    options: list[str] = Field(default_factory=list)
    correct_answer: str = ""
    marks: int = 1


class ExamResult(Record):
    """A student's attempt at an exam.

    Two tenant keys: tenant_id is the tenant that recorded the result (the
    student's tenant), exam_tenant_id is the tenant that authored the exam
    (None for super-admin exams). Cascade deletion sweeps both.
    """

    exam_id: str
    student_id: str
    tenant_id: str
    exam_tenant_id: str | None = None
    board: Board
    exam_title: str = ""
    percentage: float
    obtained_marks: float = 0
    total_marks: float = 0
    time_taken: int = 0
    completed_at: datetime = Field(default_factory=_utcnow)
    is_active: bool = True


class Stream(Record):
    title: str
    tenant_id: str
    streamer_id: str
    subject_id: str | None = None
    status: Literal["scheduled", "live", "ended"] = "scheduled"


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class User(BaseModel):
    """Identity model returned by the auth layer.

    Frozen — users are identity objects, no mutation after creation.
    tenant_id is None only for the super-admin. For an admin it is their
    own tenant id.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    role: Literal["student", "teacher", "admin", "super-admin"]
    name: str
    tenant_id: str | None = None


# ---------------------------------------------------------------------------
# API envelope
# ---------------------------------------------------------------------------


class ApiError(BaseModel):
    """Error detail inside ApiResponse.error.

    code is an uppercase string like "NOT_FOUND", "DUPLICATE_KEY",
    "CROSS_BOARD_VIOLATION". Not an enum: error codes grow with the engine.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str


class ApiResponse(BaseModel):
    """Universal response envelope — every API endpoint returns this shape."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    data: Any | None = None
    error: ApiError | None = None


# ---------------------------------------------------------------------------
# Content markers
# ---------------------------------------------------------------------------


class ContentBlock(BaseModel):
    """Content source marker — identifies whether text came from AI or static.

    model_family is None for static content, populated for AI-generated content
    (e.g. "claude", "gemini").
    """

    model_config = ConfigDict(frozen=True)

    source: Literal["ai", "static"]
    content: str
    model_family: str | None = None
