"""Shared engine test fixtures.

Factory-pattern fixtures that return async callables accepting **overrides.
Every engine test builds its world through these, against a fresh
InMemoryEntityStore per test.

Fixtures:
    store: Fresh InMemoryEntityStore with the default unique indexes
    settings: Settings with fast bcrypt rounds
    engine: Every engine service wired over ``store``
    make_tenant / make_subject / make_class / make_teacher / make_student:
        Factories that insert a valid record and return it
    make_video / make_exam / make_result: Content and exam factories
    mock_provider: Factory for MockProvider instances
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from schoolhub.ai.providers.mock import MockProvider
from schoolhub.config import Settings
from schoolhub.engine.container import Engine, build_engine
from schoolhub.hooks.credentials import BcryptCredentialService
from schoolhub.hooks.database import InMemoryEntityStore
from schoolhub.schemas import (
    Assessment,
    Board,
    Collection,
    Exam,
    ExamResult,
    SchoolClass,
    Student,
    Subject,
    Teacher,
    Tenant,
    Video,
)

BASE_TIME = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _tag() -> str:
    return uuid4().hex[:8]


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings with the bcrypt minimum cost so hashing stays fast."""
    return Settings(
        app_env="test",
        app_port=8000,
        log_level="info",
        cors_origins=[],
        default_student_password="Password123",
        bcrypt_rounds=4,
        super_admin_email="superadmin@schoolhub.local",
        ai_enabled=False,
        insights_tier="fast",
        google_api_key="",
        anthropic_api_key="",
    )


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def engine(store, settings) -> Engine:
    return build_engine(store, BcryptCredentialService(rounds=4), settings)


@pytest.fixture
def mock_provider():
    """Returns a factory function for creating MockProvider instances."""

    def _make(**kwargs) -> MockProvider:
        return MockProvider(**kwargs)

    return _make


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_tenant(store):
    """Inserts a tenant. Defaults to board CBSE_AP and a school name."""

    async def _make(**overrides) -> Tenant:
        defaults = {
            "email": f"admin-{_tag()}@school.example.com",
            "full_name": "Test Admin",
            "board": Board.CBSE_AP,
            "school_name": "Test High School",
        }
        defaults.update(overrides)
        tenant = Tenant(**defaults)
        await store.insert(Collection.TENANTS, tenant.model_dump())
        return tenant

    return _make


@pytest.fixture
def make_subject(store):
    async def _make(**overrides) -> Subject:
        defaults = {"name": f"Subject {_tag()}", "board": Board.CBSE_AP}
        defaults.update(overrides)
        subject = Subject(**defaults)
        await store.insert(Collection.SUBJECTS, subject.model_dump())
        return subject

    return _make


@pytest.fixture
def make_class(store):
    """Inserts a class section. ``tenant`` is required."""

    async def _make(tenant: Tenant, **overrides) -> SchoolClass:
        defaults = {
            "class_number": "10",
            "section": "A",
            "tenant_id": tenant.id,
            "board": tenant.board,
            "school": tenant.school_name,
        }
        defaults.update(overrides)
        school_class = SchoolClass(**defaults)
        await store.insert(Collection.CLASSES, school_class.model_dump())
        return school_class

    return _make


@pytest.fixture
def make_teacher(store):
    async def _make(tenant: Tenant, **overrides) -> Teacher:
        defaults = {
            "email": f"teacher-{_tag()}@school.example.com",
            "full_name": "Test Teacher",
            "tenant_id": tenant.id,
            "board": tenant.board,
        }
        defaults.update(overrides)
        teacher = Teacher(**defaults)
        await store.insert(Collection.TEACHERS, teacher.model_dump())
        return teacher

    return _make


@pytest.fixture
def make_student(store):
    """Inserts a student. Board is left empty unless overridden."""

    async def _make(tenant: Tenant | None, **overrides) -> Student:
        defaults = {
            "email": f"student-{_tag()}@school.example.com",
            "full_name": "Test Student",
            "tenant_id": tenant.id if tenant else None,
        }
        defaults.update(overrides)
        student = Student(**defaults)
        await store.insert(Collection.STUDENTS, student.model_dump())
        return student

    return _make


@pytest.fixture
def make_video(store):
    """Inserts a published video. ``teacher`` and ``subject_ref`` are required."""

    async def _make(teacher: Teacher, subject_ref: str, **overrides) -> Video:
        defaults = {
            "title": f"Video {_tag()}",
            "tenant_id": teacher.tenant_id,
            "created_by": teacher.id,
            "subject_ref": subject_ref,
        }
        defaults.update(overrides)
        video = Video(**defaults)
        await store.insert(Collection.VIDEOS, video.model_dump())
        return video

    return _make


@pytest.fixture
def make_assessment(store):
    async def _make(teacher: Teacher, subject_refs: list[str], **overrides) -> Assessment:
        defaults = {
            "title": f"Assessment {_tag()}",
            "tenant_id": teacher.tenant_id,
            "created_by": teacher.id,
            "subject_refs": subject_refs,
        }
        defaults.update(overrides)
        assessment = Assessment(**defaults)
        await store.insert(Collection.ASSESSMENTS, assessment.model_dump())
        return assessment

    return _make


@pytest.fixture
def make_exam(store):
    """Inserts an exam. Defaults to a super-admin exam on CBSE_AP."""

    async def _make(**overrides) -> Exam:
        defaults = {
            "title": f"Exam {_tag()}",
            "board": Board.CBSE_AP,
            "created_by": "super-admin-1",
            "created_by_role": "super-admin",
            "tenant_id": None,
        }
        defaults.update(overrides)
        exam = Exam(**defaults)
        await store.insert(Collection.EXAMS, exam.model_dump())
        return exam

    return _make


@pytest.fixture
def make_result(store):
    """Inserts an exam result. ``minutes`` offsets completed_at from BASE_TIME."""

    async def _make(
        exam: Exam, student: Student, percentage: float, minutes: int = 0, **overrides
    ) -> ExamResult:
        defaults = {
            "exam_id": exam.id,
            "student_id": student.id,
            "tenant_id": student.tenant_id,
            "exam_tenant_id": exam.tenant_id,
            "board": student.board or exam.board,
            "exam_title": exam.title,
            "percentage": percentage,
            "obtained_marks": percentage,
            "total_marks": 100,
            "completed_at": BASE_TIME + timedelta(minutes=minutes),
        }
        defaults.update(overrides)
        result = ExamResult(**defaults)
        await store.insert(Collection.EXAM_RESULTS, result.model_dump())
        return result

    return _make
