"""Assignment graph — the many-to-many relations inside one tenant.

Maintains and queries:
  Teacher ↔ Subject    (Teacher.subjects)
  Teacher ↔ Class      (Teacher.assigned_class_ids, polymorphic ClassRef)
  Class   ↔ Subject    (SchoolClass.assigned_subjects, per grade)
  Student ↔ Class      (Student.class_id + denormalized number/section)
  Student ↔ Subject    (Student.assigned_subjects, board-checked)

Every mutation first loads the owning entity through the caller's Scope.
An entity outside the caller's tenant is reported as NotFound, the same as
an absent one. The super-tenant scope bypasses tenant checks.

Single-entity operations: the first error fails the whole call and nothing
is written.

Tier 2 service: imports from hooks.interfaces, schemas, errors, and the
engine leaf modules refs and inheritance.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from schoolhub.engine.inheritance import InheritanceResolver
from schoolhub.engine.refs import (
    ById,
    ClassRef,
    normalize_class_number,
    parse_class_ref,
    parse_class_refs,
    teacher_covers_class,
)
from schoolhub.errors import CrossBoardViolation, NotFound, ValidationFailed
from schoolhub.hooks.interfaces import EntityStore
from schoolhub.schemas import (
    Board,
    Collection,
    SchoolClass,
    Student,
    Subject,
    Teacher,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scope:
    """Who is calling: one tenant, or the super-tenant.

    Attributes:
        tenant_id: The caller's tenant. None for the super-tenant.
        is_super: True for the super-tenant, which sees every tenant.
    """

    tenant_id: str | None
    is_super: bool = False

    @classmethod
    def super_tenant(cls) -> Scope:
        return cls(tenant_id=None, is_super=True)

    @classmethod
    def for_tenant(cls, tenant_id: str) -> Scope:
        return cls(tenant_id=tenant_id)

    def owns(self, tenant_id: str | None) -> bool:
        return self.is_super or (tenant_id is not None and tenant_id == self.tenant_id)


def _dedupe(values: Iterable[str]) -> list[str]:
    """Removes duplicates, keeping first-seen order."""
    seen: set[str] = set()
    unique: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


class AssignmentGraph:
    """Maintains tenant-scoped assignment relations.

    Args:
        store: The entity store.
        resolver: Inheritance resolver for student boards.
    """

    def __init__(self, store: EntityStore, resolver: InheritanceResolver) -> None:
        self._store = store
        self._resolver = resolver

    # -- loading -----------------------------------------------------------

    async def get_teacher(self, scope: Scope, teacher_id: str) -> Teacher:
        doc = await self._store.find_one(Collection.TEACHERS, {"id": teacher_id})
        if doc is None or not scope.owns(doc.get("tenant_id")):
            raise NotFound(f"Teacher {teacher_id} not found")
        return Teacher.model_validate(doc)

    async def get_student(self, scope: Scope, student_id: str) -> Student:
        doc = await self._store.find_one(Collection.STUDENTS, {"id": student_id})
        if doc is None or not scope.owns(doc.get("tenant_id")):
            raise NotFound(f"Student {student_id} not found")
        return Student.model_validate(doc)

    async def get_class(self, scope: Scope, class_id: str) -> SchoolClass:
        doc = await self._store.find_one(Collection.CLASSES, {"id": class_id})
        if doc is None or not scope.owns(doc.get("tenant_id")):
            raise NotFound(f"Class {class_id} not found")
        return SchoolClass.model_validate(doc)

    async def load_subjects(self, subject_ids: Sequence[str]) -> list[Subject]:
        """Loads subjects in the requested order.

        Raises:
            NotFound: If any id has no subject.
        """
        ids = _dedupe(subject_ids)
        if not ids:
            return []
        docs = await self._store.find(Collection.SUBJECTS, {"id": {"$in": ids}})
        by_id = {doc["id"]: Subject.model_validate(doc) for doc in docs}
        missing = [subject_id for subject_id in ids if subject_id not in by_id]
        if missing:
            raise NotFound(f"Subjects not found: {', '.join(missing)}")
        return [by_id[subject_id] for subject_id in ids]

    # -- Teacher ↔ Subject -------------------------------------------------

    async def assign_subjects_to_teacher(
        self, scope: Scope, teacher_id: str, subject_ids: Sequence[str]
    ) -> Teacher:
        """Replaces a teacher's subject set.

        Raises:
            NotFound: Teacher outside scope, or an unknown subject id.
        """
        teacher = await self.get_teacher(scope, teacher_id)
        subjects = await self.load_subjects(subject_ids)
        teacher.subjects = [subject.id for subject in subjects]
        await self._store.update_one(
            Collection.TEACHERS, {"id": teacher.id}, {"subjects": teacher.subjects}
        )
        logger.info(
            "Assigned %d subjects to teacher %s", len(teacher.subjects), teacher.id
        )
        return teacher

    # -- Teacher ↔ Class ---------------------------------------------------

    async def assign_classes_to_teacher(
        self, scope: Scope, teacher_id: str, class_refs: Sequence[str | ClassRef]
    ) -> Teacher:
        """Replaces a teacher's class assignments.

        Each ref may be a class document id or a class-number string. Both
        must resolve within the teacher's tenant: an id to one of its
        classes, a number to at least one section. Refs are stored encoded.

        Raises:
            NotFound: Teacher outside scope, or a ref that resolves to no
                class of the teacher's tenant.
            ValidationFailed: An empty ref.
        """
        teacher = await self.get_teacher(scope, teacher_id)
        try:
            refs = [parse_class_ref(raw) for raw in class_refs]
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from exc

        classes = await self.classes_for_tenant(teacher.tenant_id)
        for ref in refs:
            if not any(ref.matches(school_class) for school_class in classes):
                label = ref.class_id if isinstance(ref, ById) else f"number {ref.class_number}"
                raise NotFound(f"Class {label} not found")

        teacher.assigned_class_ids = _dedupe(ref.encode() for ref in refs)
        await self._store.update_one(
            Collection.TEACHERS,
            {"id": teacher.id},
            {"assigned_class_ids": teacher.assigned_class_ids},
        )
        return teacher

    # -- Class ↔ Subject ---------------------------------------------------

    async def assign_subjects_to_class_number(
        self,
        scope: Scope,
        tenant_id: str,
        class_number: str,
        subject_ids: Sequence[str],
    ) -> int:
        """Assigns the same subjects to every section of one grade.

        Returns:
            Number of sections updated.

        Raises:
            NotFound: Tenant outside scope, no class with that number, or
                an unknown subject id.
            CrossBoardViolation: A subject's board differs from the class's.
        """
        if not scope.owns(tenant_id):
            raise NotFound(f"Tenant {tenant_id} not found")
        number = normalize_class_number(class_number) or class_number.strip()
        docs = await self._store.find(
            Collection.CLASSES, {"tenant_id": tenant_id, "class_number": number}
        )
        if not docs:
            raise NotFound(f"No classes with number {number} in this tenant")
        sections = [SchoolClass.model_validate(doc) for doc in docs]
        subjects = await self.load_subjects(subject_ids)

        tenant = await self._resolver.get_tenant(tenant_id)
        for section in sections:
            board = section.board or tenant.board
            _check_same_board(subjects, board, f"class {section.label}")

        assigned = [subject.id for subject in subjects]
        updated = await self._store.update_many(
            Collection.CLASSES,
            {"tenant_id": tenant_id, "class_number": number},
            {"assigned_subjects": assigned},
        )
        logger.info(
            "Assigned %d subjects to %d sections of class %s (tenant %s)",
            len(assigned),
            updated,
            number,
            tenant_id,
        )
        return updated

    # -- Student ↔ Class ---------------------------------------------------

    async def assign_class_to_student(
        self, scope: Scope, student_id: str, class_id: str
    ) -> Student:
        """Links a student to one class section of their own tenant.

        Raises:
            NotFound: Student outside scope, or class not in the student's
                tenant.
        """
        student = await self.get_student(scope, student_id)
        school_class = await self.get_class(Scope.for_tenant(student.tenant_id), class_id)
        student.class_id = school_class.id
        student.class_number = school_class.class_number
        student.section = school_class.section
        await self._store.update_one(
            Collection.STUDENTS,
            {"id": student.id},
            {
                "class_id": student.class_id,
                "class_number": student.class_number,
                "section": student.section,
            },
        )
        return student

    # -- Student ↔ Subject -------------------------------------------------

    async def assign_subjects_to_student(
        self, scope: Scope, student_id: str, subject_ids: Sequence[str]
    ) -> Student:
        """Replaces a student's assigned subjects.

        Every subject must be on the student's resolved board. On any
        mismatch nothing is written.

        Raises:
            NotFound: Student outside scope, or an unknown subject id.
            BoardUnresolved: The student's board can't be determined.
            CrossBoardViolation: A subject from a different board.
        """
        student = await self.get_student(scope, student_id)
        board = await self._resolver.resolve_board(student)
        subjects = await self.load_subjects(subject_ids)
        _check_same_board(subjects, board, f"student {student.email}")

        student.assigned_subjects = [subject.id for subject in subjects]
        await self._store.update_one(
            Collection.STUDENTS,
            {"id": student.id},
            {"assigned_subjects": student.assigned_subjects},
        )
        return student

    # -- queries -----------------------------------------------------------

    async def classes_for_tenant(self, tenant_id: str) -> list[SchoolClass]:
        docs = await self._store.find(
            Collection.CLASSES,
            {"tenant_id": tenant_id},
            sort=[("class_number", 1), ("section", 1)],
        )
        return [SchoolClass.model_validate(doc) for doc in docs]

    async def classes_for_teacher(self, teacher: Teacher) -> list[SchoolClass]:
        """Every class section the teacher's refs point at."""
        refs = parse_class_refs(teacher.assigned_class_ids)
        if not refs:
            return []
        classes = await self.classes_for_tenant(teacher.tenant_id)
        return [c for c in classes if any(ref.matches(c) for ref in refs)]

    async def teachers_for_class(
        self, tenant_id: str, school_class: SchoolClass
    ) -> list[Teacher]:
        """Teachers of the tenant whose refs cover this class, in either form."""
        docs = await self._store.find(
            Collection.TEACHERS, {"tenant_id": tenant_id, "is_active": True}
        )
        teachers = [Teacher.model_validate(doc) for doc in docs]
        return [
            teacher
            for teacher in teachers
            if teacher_covers_class(teacher.assigned_class_ids, school_class)
        ]

    async def subject_teacher_map(
        self, school_class: SchoolClass, catalog: Sequence[Subject]
    ) -> dict[str, list[str]]:
        """Maps subject id → ids of the class's active teachers teaching it.

        Only teachers whose class refs cover ``school_class`` (by id or by
        class number) count. Only subjects from the given catalog are
        considered, and subjects with no teacher are left out entirely.
        """
        catalog_ids = {subject.id for subject in catalog}
        if not catalog_ids:
            return {}
        teachers = await self.teachers_for_class(school_class.tenant_id, school_class)
        mapping: dict[str, list[str]] = {}
        for teacher in teachers:
            for subject_id in teacher.subjects:
                if subject_id in catalog_ids:
                    mapping.setdefault(subject_id, []).append(teacher.id)
        return mapping


def _check_same_board(
    subjects: Sequence[Subject], board: Board | None, target: str
) -> None:
    """Raises CrossBoardViolation if any subject is off-board."""
    if board is None:
        return
    offending = [s.name for s in subjects if Board.parse(s.board) != Board.parse(board)]
    if offending:
        raise CrossBoardViolation(
            f"Subjects {', '.join(offending)} are not on board "
            f"{Board.parse(board).value} of {target}"
        )


