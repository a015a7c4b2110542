"""Tenant administration — tenants, their classes, teachers and students.

Creation paths for everything a tenant owns. Classes and students can only
be created once the tenant has a board (InheritanceResolver precondition).
New records copy the tenant's board and school at creation time.

Tier 2 service: imports from hooks.interfaces, schemas, errors, config,
engine.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

from pydantic import ValidationError

from schoolhub.config import Settings
from schoolhub.engine.graph import AssignmentGraph, Scope
from schoolhub.engine.inheritance import InheritanceResolver
from schoolhub.engine.refs import normalize_class_number
from schoolhub.errors import DuplicateKey, EngineError, NotFound, ValidationFailed
from schoolhub.hooks.interfaces import CredentialService, EntityStore
from schoolhub.schemas import (
    Board,
    Collection,
    Record,
    SchoolClass,
    Student,
    Teacher,
    Tenant,
)

logger = logging.getLogger(__name__)

_PUBLIC_EXCLUDE = {"password_hash"}

_R = TypeVar("_R", bound=Record)


def public_dump(record: Tenant | Teacher | Student) -> dict:
    """JSON-ready dict without credential fields."""
    return record.model_dump(mode="json", exclude=_PUBLIC_EXCLUDE)


def _parse_board(value: str | Board | None) -> Board | None:
    if value is None or value == "":
        return None
    try:
        return Board.parse(value)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc


def _build(model: type[_R], **fields) -> _R:
    """Builds a record, reporting malformed fields (e.g. email) as ValidationFailed."""
    try:
        return model(**fields)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationFailed(f"Invalid {model.__name__.lower()}: {problems}") from exc


@dataclass(frozen=True)
class TenantOverview:
    """A tenant with the sizes of what it owns."""

    tenant: Tenant
    students: int
    teachers: int
    videos: int
    assessments: int
    exams: int

    def to_dict(self) -> dict:
        return {
            **public_dump(self.tenant),
            "counts": {
                "students": self.students,
                "teachers": self.teachers,
                "videos": self.videos,
                "assessments": self.assessments,
                "exams": self.exams,
            },
        }


class TenantService:
    """Creates and updates tenants and the records scoped to them.

    Args:
        store: The entity store.
        resolver: Inheritance resolver (tenant lookup, board precondition).
        graph: Assignment graph, for initial teacher assignments.
        credentials: Password hashing.
        settings: Default passwords.
    """

    def __init__(
        self,
        store: EntityStore,
        resolver: InheritanceResolver,
        graph: AssignmentGraph,
        credentials: CredentialService,
        settings: Settings,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._graph = graph
        self._credentials = credentials
        self._settings = settings

    def _check_scope(self, scope: Scope, tenant_id: str) -> None:
        if not scope.owns(tenant_id):
            raise NotFound(f"Tenant {tenant_id} not found")

    # -- tenants -----------------------------------------------------------

    async def create_tenant(
        self,
        email: str,
        full_name: str,
        *,
        board: str | Board | None = None,
        school_name: str = "",
        password: str | None = None,
    ) -> Tenant:
        """Creates a tenant (super-tenant only at the HTTP layer).

        Raises:
            ValidationFailed: Unknown board code, or the email is empty or malformed.
            DuplicateKey: The email is already used by another tenant.
        """
        if not email.strip():
            raise ValidationFailed("Tenant email is required")
        tenant = _build(
            Tenant,
            email=email,
            full_name=full_name.strip(),
            board=_parse_board(board),
            school_name=school_name.strip(),
        )
        if await self._store.find_one(Collection.TENANTS, {"email": tenant.email}):
            raise DuplicateKey(
                Collection.TENANTS.value,
                ("email",),
                f"A tenant with email {tenant.email} already exists",
            )
        tenant.password_hash = await self._credentials.hash_secret(
            password or self._settings.default_student_password
        )
        await self._store.insert(Collection.TENANTS, tenant.model_dump())
        logger.info("Created tenant %s (%s)", tenant.id, tenant.email)
        return tenant

    async def get_tenant(self, scope: Scope, tenant_id: str) -> Tenant:
        self._check_scope(scope, tenant_id)
        return await self._resolver.get_tenant(tenant_id)

    async def update_tenant(
        self,
        tenant_id: str,
        *,
        full_name: str | None = None,
        board: str | Board | None = None,
        school_name: str | None = None,
        is_active: bool | None = None,
        propagate_board: bool = False,
    ) -> Tenant:
        """Updates tenant fields.

        A board change only affects records that have no board yet (they
        inherit lazily). With propagate_board=True the new board is also
        written onto every class, teacher and student of the tenant.

        Raises:
            NotFound: Unknown tenant.
            ValidationFailed: Unknown board code.
        """
        tenant = await self._resolver.get_tenant(tenant_id)
        patch: dict = {}
        if full_name is not None:
            patch["full_name"] = full_name.strip()
        if school_name is not None:
            patch["school_name"] = school_name.strip()
        if is_active is not None:
            patch["is_active"] = is_active
        new_board = _parse_board(board)
        if new_board is not None:
            patch["board"] = new_board

        if patch:
            await self._store.update_one(Collection.TENANTS, {"id": tenant.id}, patch)
            tenant = tenant.model_copy(update=patch)

        if propagate_board and tenant.board is not None:
            counts = await asyncio.gather(
                *(
                    self._store.update_many(
                        collection, {"tenant_id": tenant.id}, {"board": tenant.board}
                    )
                    for collection in (
                        Collection.CLASSES,
                        Collection.TEACHERS,
                        Collection.STUDENTS,
                    )
                )
            )
            logger.info(
                "Propagated board %s to tenant %s: %d classes, %d teachers, %d students",
                tenant.board.value,
                tenant.id,
                *counts,
            )
        return tenant

    async def list_tenants(self) -> list[TenantOverview]:
        docs = await self._store.find(Collection.TENANTS, sort=[("created_at", -1)])
        tenants = [Tenant.model_validate(doc) for doc in docs]
        return list(await asyncio.gather(*(self._overview(t) for t in tenants)))

    async def _overview(self, tenant: Tenant) -> TenantOverview:
        query = {"tenant_id": tenant.id}
        students, teachers, videos, assessments, exams = await asyncio.gather(
            self._store.count_documents(Collection.STUDENTS, query),
            self._store.count_documents(Collection.TEACHERS, query),
            self._store.count_documents(Collection.VIDEOS, query),
            self._store.count_documents(Collection.ASSESSMENTS, query),
            self._store.count_documents(Collection.EXAMS, query),
        )
        return TenantOverview(tenant, students, teachers, videos, assessments, exams)

    async def dashboard_stats(self, scope: Scope, tenant_id: str) -> dict[str, int]:
        """Concurrent counts of everything the tenant owns."""
        self._check_scope(scope, tenant_id)
        query = {"tenant_id": tenant_id}
        (
            students,
            active_students,
            teachers,
            classes,
            videos,
            assessments,
            exams,
        ) = await asyncio.gather(
            self._store.count_documents(Collection.STUDENTS, query),
            self._store.count_documents(
                Collection.STUDENTS, {**query, "is_active": True}
            ),
            self._store.count_documents(Collection.TEACHERS, query),
            self._store.count_documents(Collection.CLASSES, query),
            self._store.count_documents(Collection.VIDEOS, query),
            self._store.count_documents(Collection.ASSESSMENTS, query),
            self._store.count_documents(Collection.EXAMS, query),
        )
        return {
            "total_students": students,
            "active_students": active_students,
            "total_teachers": teachers,
            "total_classes": classes,
            "total_videos": videos,
            "total_assessments": assessments,
            "total_exams": exams,
        }

    # -- classes -----------------------------------------------------------

    async def create_class(
        self, scope: Scope, tenant_id: str, class_number: str, section: str
    ) -> SchoolClass:
        """Creates one class section.

        A new section of an existing grade starts with the grade's subjects,
        so every section of a class number keeps the same subject set.

        Raises:
            NotFound: Tenant outside scope or missing.
            BoardUnresolved: Tenant has no board.
            ValidationFailed: Bad class number or section.
            DuplicateKey: (class_number, section) already exists in the tenant.
        """
        self._check_scope(scope, tenant_id)
        tenant = await self._resolver.require_tenant_board(tenant_id)
        number = normalize_class_number(class_number)
        if number is None:
            raise ValidationFailed(f"Invalid class number: {class_number!r}")

        sibling = await self._store.find_one(
            Collection.CLASSES, {"tenant_id": tenant.id, "class_number": number}
        )
        try:
            school_class = SchoolClass(
                class_number=number,
                section=section,
                tenant_id=tenant.id,
                board=tenant.board,
                school=tenant.school_name,
                name=f"Class {number}",
                assigned_subjects=list(sibling["assigned_subjects"]) if sibling else [],
            )
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from exc

        await self._store.insert(Collection.CLASSES, school_class.model_dump())
        logger.info("Created class %s for tenant %s", school_class.label, tenant.id)
        return school_class

    # -- people ------------------------------------------------------------

    async def create_student(
        self,
        scope: Scope,
        tenant_id: str,
        *,
        email: str,
        full_name: str,
        phone: str = "",
        class_id: str | None = None,
        password: str | None = None,
    ) -> Student:
        """Creates one student under a tenant that has a board.

        Raises:
            NotFound: Tenant outside scope, or class not in the tenant.
            BoardUnresolved: Tenant has no board.
            ValidationFailed: Malformed email.
            DuplicateKey: Email already in use.
        """
        self._check_scope(scope, tenant_id)
        tenant = await self._resolver.require_tenant_board(tenant_id)
        student = _build(
            Student,
            email=email,
            full_name=full_name.strip(),
            phone=phone.strip(),
            tenant_id=tenant.id,
            board=tenant.board,
            school_name=tenant.school_name,
            must_reset_password=password is None,
        )
        if class_id:
            school_class = await self._graph.get_class(
                Scope.for_tenant(tenant.id), class_id
            )
            student.class_id = school_class.id
            student.class_number = school_class.class_number
            student.section = school_class.section

        if await self._store.find_one(Collection.STUDENTS, {"email": student.email}):
            raise DuplicateKey(
                Collection.STUDENTS.value,
                ("email",),
                f"A student with email {student.email} already exists",
            )
        student.password_hash = await self._credentials.hash_secret(
            password or self._settings.default_student_password
        )
        await self._store.insert(Collection.STUDENTS, student.model_dump())
        return student

    async def create_teacher(
        self,
        scope: Scope,
        tenant_id: str,
        *,
        email: str,
        full_name: str,
        phone: str = "",
        subject_ids: Sequence[str] = (),
        class_refs: Sequence[str] = (),
        password: str | None = None,
    ) -> Teacher:
        """Creates a teacher, optionally with initial subjects and classes.

        Raises:
            NotFound: Tenant outside scope, unknown subject, or unknown class.
            ValidationFailed: Malformed email.
            DuplicateKey: Email already in use.
        """
        self._check_scope(scope, tenant_id)
        tenant = await self._resolver.get_tenant(tenant_id)
        teacher = _build(
            Teacher,
            email=email,
            full_name=full_name.strip(),
            phone=phone.strip(),
            tenant_id=tenant.id,
            board=tenant.board,
            school_name=tenant.school_name,
        )
        if await self._store.find_one(Collection.TEACHERS, {"email": teacher.email}):
            raise DuplicateKey(
                Collection.TEACHERS.value,
                ("email",),
                f"A teacher with email {teacher.email} already exists",
            )
        if subject_ids:
            subjects = await self._graph.load_subjects(subject_ids)
            teacher.subjects = [subject.id for subject in subjects]

        teacher.password_hash = await self._credentials.hash_secret(
            password or self._settings.default_student_password
        )
        await self._store.insert(Collection.TEACHERS, teacher.model_dump())
        if class_refs:
            try:
                teacher = await self._graph.assign_classes_to_teacher(
                    scope, teacher.id, class_refs
                )
            except EngineError:
                await self._store.delete_one(Collection.TEACHERS, {"id": teacher.id})
                raise
        return teacher

    async def list_students(
        self, scope: Scope, tenant_id: str, class_number: str | None = None
    ) -> list[Student]:
        self._check_scope(scope, tenant_id)
        query: dict = {"tenant_id": tenant_id}
        if class_number:
            query["class_number"] = normalize_class_number(class_number) or class_number
        docs = await self._store.find(
            Collection.STUDENTS, query, sort=[("created_at", -1)]
        )
        return [Student.model_validate(doc) for doc in docs]

    async def list_teachers(self, scope: Scope, tenant_id: str) -> list[Teacher]:
        self._check_scope(scope, tenant_id)
        docs = await self._store.find(
            Collection.TEACHERS, {"tenant_id": tenant_id}, sort=[("created_at", -1)]
        )
        return [Teacher.model_validate(doc) for doc in docs]
