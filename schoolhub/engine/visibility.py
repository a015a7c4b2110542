"""Visibility resolver — what a given student is allowed to see.

Teacher content (videos, assessments) becomes visible only through a
subject that someone actually teaches to the student's class:

  1. Resolve the student's tenant, effective board and class section. A
     student without a class sees no teacher content (NO_CLASS_ASSIGNED).
  2. Load the board's subject catalog.
  3. Load the tenant's teachers whose class refs cover the student's class
     (by id or by class number) and whose subjects intersect the catalog,
     and build subject → [teacher ids]. Subjects with no teacher drop out.
  4. Keep only the class's subjects plus the student's own assigned
     subjects. An empty union yields NO_SUBJECTS_ASSIGNED.
  5. An item is visible when its subject ref resolves (id / str id / name)
     to a subject in the map AND its creator is one of that subject's
     teachers AND its tenant is the student's tenant.
  6. Board-wide exclusive content (super-tenant authored) is matched by
     board alone.

A subject with no teacher never leaks content, even if videos for it exist
and even if exclusive content exists for other subjects.

"Nothing matched" is not an error: every resolver returns a
VisibilityResult whose ``reason`` explains an empty list.

Reads only. Each collection is read once per call; a concurrent assignment
change may be observed by one read and not another, which is acceptable.

Tier 2 service: imports from hooks.interfaces, schemas, errors, engine.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Literal

from schoolhub.engine.graph import AssignmentGraph, Scope
from schoolhub.engine.inheritance import InheritanceResolver
from schoolhub.engine.refs import resolve_subject_ref
from schoolhub.errors import NotFound
from schoolhub.hooks.interfaces import EntityStore
from schoolhub.schemas import (
    Assessment,
    Board,
    Collection,
    Content,
    Exam,
    Record,
    SchoolClass,
    Student,
    Subject,
    Video,
)

logger = logging.getLogger(__name__)

# Reason codes for empty results.
NO_TEACHERS = "NO_TEACHERS"
NO_TEACHER_FOR_SUBJECT = "NO_TEACHER_FOR_SUBJECT"
NO_SUBJECTS_ASSIGNED = "NO_SUBJECTS_ASSIGNED"
NO_CLASS_ASSIGNED = "NO_CLASS_ASSIGNED"
UNKNOWN_SUBJECT = "UNKNOWN_SUBJECT"
NO_CONTENT = "NO_CONTENT"

_REASON_MESSAGES: dict[str, str] = {
    NO_TEACHERS: "No teacher in your school teaches a subject on your board yet.",
    NO_TEACHER_FOR_SUBJECT: "No teacher has been assigned to this subject yet.",
    NO_SUBJECTS_ASSIGNED: "Your class has no subjects assigned yet.",
    NO_CLASS_ASSIGNED: "You have not been placed in a class yet.",
    UNKNOWN_SUBJECT: "This subject does not exist on your board.",
    NO_CONTENT: "Nothing has been published here yet.",
}


@dataclass(frozen=True)
class VisibilityResult:
    """Items visible to a student, newest first.

    Attributes:
        items: The visible records.
        reason: Reason code when items is empty for a structural reason
            (no teacher, no subjects). None when items is non-empty.
    """

    items: list = field(default_factory=list)
    reason: str | None = None

    @property
    def message(self) -> str | None:
        if self.reason is None:
            return None
        return _REASON_MESSAGES.get(self.reason, self.reason)

    def to_dict(self) -> dict:
        return {
            "items": [item.model_dump(mode="json") for item in self.items],
            "count": len(self.items),
            "reason": self.reason,
            "message": self.message,
        }


@dataclass(frozen=True)
class FeedItem:
    """One entry of the merged feed, tagged with where it came from."""

    kind: Literal["video", "assessment", "content"]
    item: Record

    def model_dump(self, mode: str = "python") -> dict:
        return {"kind": self.kind, **self.item.model_dump(mode=mode)}


@dataclass
class _StudentContext:
    student: Student
    board: Board
    catalog: list[Subject]
    subject_teachers: dict[str, list[str]] = field(default_factory=dict)
    # Reason teacher content is closed to this student before any matching.
    blocked: str | None = None

    @property
    def visible_subject_ids(self) -> set[str]:
        return set(self.subject_teachers)


def _newest_first(items: list) -> list:
    return sorted(items, key=lambda item: (item.created_at, item.id), reverse=True)


class VisibilityResolver:
    """Computes per-student visibility over videos, assessments, exams, content.

    Args:
        store: The entity store.
        resolver: Inheritance resolver for the student's board.
        graph: Assignment graph for the subject → teachers map.
    """

    def __init__(
        self,
        store: EntityStore,
        resolver: InheritanceResolver,
        graph: AssignmentGraph,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._graph = graph

    # -- context -----------------------------------------------------------

    async def _load_student(self, student_id: str) -> Student:
        student = await self._graph.get_student(Scope.super_tenant(), student_id)
        if not student.tenant_id:
            raise NotFound(f"Student {student_id} is not assigned to any tenant")
        return student

    async def _student_class(self, student: Student) -> SchoolClass | None:
        """The student's class section, by id or by its denormalized label."""
        if student.class_id is not None:
            doc = await self._store.find_one(
                Collection.CLASSES,
                {"id": student.class_id, "tenant_id": student.tenant_id},
            )
        elif student.class_number:
            query = {"tenant_id": student.tenant_id, "class_number": student.class_number}
            if student.section:
                query["section"] = student.section
            doc = await self._store.find_one(Collection.CLASSES, query)
        else:
            doc = None
        return SchoolClass.model_validate(doc) if doc is not None else None

    async def _context(self, student_id: str) -> _StudentContext:
        student = await self._load_student(student_id)
        board = await self._resolver.resolve_board(student)

        catalog_docs, school_class = await asyncio.gather(
            self._store.find(
                Collection.SUBJECTS, {"board": board, "is_active": True}
            ),
            self._student_class(student),
        )
        catalog = [Subject.model_validate(doc) for doc in catalog_docs]
        ctx = _StudentContext(student=student, board=board, catalog=catalog)
        if school_class is None:
            ctx.blocked = NO_CLASS_ASSIGNED
            return ctx

        allowed = set(school_class.assigned_subjects) | set(student.assigned_subjects)
        if not allowed:
            ctx.blocked = NO_SUBJECTS_ASSIGNED
            return ctx

        mapping = await self._graph.subject_teacher_map(school_class, catalog)
        ctx.subject_teachers = {
            sid: tids for sid, tids in mapping.items() if sid in allowed
        }
        return ctx

    def _empty_reason(self, ctx: _StudentContext) -> str:
        if ctx.blocked is not None:
            return ctx.blocked
        if ctx.subject_teachers:
            return NO_CONTENT
        return NO_TEACHERS

    def _focus(
        self, ctx: _StudentContext, subject: str | None
    ) -> tuple[dict[str, list[str]], str | None]:
        """Narrows the subject → teachers map to one requested subject.

        Returns:
            (narrowed map, reason). The reason is set when the map is empty
            because of the filter.
        """
        if subject is None:
            if not ctx.subject_teachers:
                return {}, self._empty_reason(ctx)
            return ctx.subject_teachers, None
        target = resolve_subject_ref(subject, ctx.catalog)
        if target is None:
            return {}, UNKNOWN_SUBJECT
        if ctx.blocked is not None:
            return {}, ctx.blocked
        teachers = ctx.subject_teachers.get(target.id, [])
        if not teachers:
            return {}, NO_TEACHER_FOR_SUBJECT
        return {target.id: teachers}, None

    def _creator_allowed(
        self,
        ctx: _StudentContext,
        mapping: dict[str, list[str]],
        raw_ref: str,
        creator: str,
    ) -> bool:
        resolved = resolve_subject_ref(raw_ref, ctx.catalog)
        if resolved is None:
            return False
        return creator in mapping.get(resolved.id, [])

    # -- teacher content ---------------------------------------------------

    async def _teacher_items(
        self, ctx: _StudentContext, mapping: dict[str, list[str]], collection: Collection
    ) -> list[dict]:
        teacher_ids = sorted({tid for tids in mapping.values() for tid in tids})
        return await self._store.find(
            collection,
            {
                "tenant_id": ctx.student.tenant_id,
                "created_by": {"$in": teacher_ids},
                "is_published": True,
                "is_active": True,
            },
        )

    async def _videos(
        self, ctx: _StudentContext, subject: str | None
    ) -> VisibilityResult:
        mapping, reason = self._focus(ctx, subject)
        if not mapping:
            return VisibilityResult(reason=reason)
        docs = await self._teacher_items(ctx, mapping, Collection.VIDEOS)
        videos = [
            video
            for video in (Video.model_validate(doc) for doc in docs)
            if self._creator_allowed(ctx, mapping, video.subject_ref, video.created_by)
        ]
        return VisibilityResult(
            items=_newest_first(videos), reason=None if videos else NO_CONTENT
        )

    async def _assessments(
        self, ctx: _StudentContext, subject: str | None
    ) -> VisibilityResult:
        mapping, reason = self._focus(ctx, subject)
        if not mapping:
            return VisibilityResult(reason=reason)
        docs = await self._teacher_items(ctx, mapping, Collection.ASSESSMENTS)
        assessments = [
            assessment
            for assessment in (Assessment.model_validate(doc) for doc in docs)
            if any(
                self._creator_allowed(ctx, mapping, ref, assessment.created_by)
                for ref in assessment.subject_refs
            )
        ]
        return VisibilityResult(
            items=_newest_first(assessments),
            reason=None if assessments else NO_CONTENT,
        )

    async def visible_videos(
        self, student_id: str, subject: str | None = None
    ) -> VisibilityResult:
        """Videos visible to the student, optionally for one subject.

        Args:
            student_id: The student.
            subject: Optional subject id or name.

        Raises:
            NotFound: Unknown student, or student without a tenant.
            BoardUnresolved: The student's board can't be determined.
        """
        ctx = await self._context(student_id)
        return await self._videos(ctx, subject)

    async def visible_assessments(
        self, student_id: str, subject: str | None = None
    ) -> VisibilityResult:
        """Assessments visible to the student. Same rules as visible_videos."""
        ctx = await self._context(student_id)
        return await self._assessments(ctx, subject)

    # -- board content -----------------------------------------------------

    async def _exclusive(
        self,
        ctx: _StudentContext,
        subject_id: str | None,
        content_type: str | None,
    ) -> list[Content]:
        query: dict = {"board": ctx.board, "is_exclusive": True, "is_active": True}
        if subject_id is not None:
            query["subject_id"] = subject_id
        if content_type is not None:
            query["content_type"] = content_type
        docs = await self._store.find(Collection.CONTENTS, query)
        return _newest_first([Content.model_validate(doc) for doc in docs])

    async def exclusive_content(
        self,
        student_id: str,
        subject: str | None = None,
        content_type: str | None = None,
    ) -> VisibilityResult:
        """Board-wide exclusive content. Independent of tenant and teachers."""
        ctx = await self._context(student_id)
        subject_id = None
        if subject is not None:
            target = resolve_subject_ref(subject, ctx.catalog)
            if target is None:
                return VisibilityResult(reason=UNKNOWN_SUBJECT)
            subject_id = target.id
        items = await self._exclusive(ctx, subject_id, content_type)
        return VisibilityResult(items=items, reason=None if items else NO_CONTENT)

    async def feed(
        self, student_id: str, subject: str | None = None
    ) -> VisibilityResult:
        """Union of teacher videos/assessments and exclusive content.

        With a subject filter, a subject nobody teaches yields an empty
        feed with NO_TEACHER_FOR_SUBJECT. Exclusive content for that
        subject is not shown either.
        """
        ctx = await self._context(student_id)

        subject_id = None
        if subject is not None:
            mapping, reason = self._focus(ctx, subject)
            if not mapping:
                return VisibilityResult(reason=reason)
            subject_id = next(iter(mapping))

        videos, assessments = await asyncio.gather(
            self._videos(ctx, subject), self._assessments(ctx, subject)
        )
        contents = await self._exclusive(ctx, subject_id, None)

        merged = (
            [FeedItem("video", item) for item in videos.items]
            + [FeedItem("assessment", item) for item in assessments.items]
            + [FeedItem("content", item) for item in contents]
        )
        merged.sort(key=lambda entry: (entry.item.created_at, entry.item.id), reverse=True)
        if merged:
            return VisibilityResult(items=merged)
        return VisibilityResult(reason=videos.reason or self._empty_reason(ctx))

    # -- exams & subjects --------------------------------------------------

    async def visible_exams(self, student_id: str) -> VisibilityResult:
        """Active exams of the student's tenant plus board-wide super-admin exams."""
        student = await self._load_student(student_id)
        board = await self._resolver.resolve_board(student)
        docs = await self._store.find(
            Collection.EXAMS,
            {
                "is_active": True,
                "$or": [
                    {"tenant_id": student.tenant_id, "created_by_role": "admin"},
                    {"created_by_role": "super-admin", "board": board},
                ],
            },
        )
        exams = _newest_first([Exam.model_validate(doc) for doc in docs])
        return VisibilityResult(items=exams, reason=None if exams else NO_CONTENT)

    async def visible_subjects(self, student_id: str) -> VisibilityResult:
        """Subjects that currently unlock teacher content for the student."""
        ctx = await self._context(student_id)
        subjects = sorted(
            (s for s in ctx.catalog if s.id in ctx.visible_subject_ids),
            key=lambda s: s.name,
        )
        if subjects:
            return VisibilityResult(items=subjects)
        return VisibilityResult(reason=self._empty_reason(ctx))
