"""Tests for schoolhub.engine.tenants — tenant, class and people creation."""

import pytest

from schoolhub.engine.graph import Scope
from schoolhub.engine.tenants import public_dump
from schoolhub.errors import BoardUnresolved, DuplicateKey, NotFound, ValidationFailed
from schoolhub.schemas import Board, Collection


class TestTenants:
    @pytest.mark.asyncio
    async def test_create_tenant_normalizes_and_hashes(self, engine, store) -> None:
        tenant = await engine.tenants.create_tenant(
            " Principal@School.Example.COM ", " Ravi Kumar ", board="cbse_ts", school_name="Oak"
        )

        assert tenant.email == "principal@school.example.com"
        assert tenant.full_name == "Ravi Kumar"
        assert tenant.board == Board.CBSE_TS
        stored = await store.find_one(Collection.TENANTS, {"id": tenant.id})
        assert stored["password_hash"].startswith("$2")

    @pytest.mark.asyncio
    async def test_board_is_optional(self, engine) -> None:
        tenant = await engine.tenants.create_tenant("noboard@school.example.com", "N")
        assert tenant.board is None

    @pytest.mark.asyncio
    async def test_duplicate_email(self, engine) -> None:
        await engine.tenants.create_tenant("dup@school.example.com", "A")
        with pytest.raises(DuplicateKey):
            await engine.tenants.create_tenant("DUP@school.example.com", "B")

    @pytest.mark.asyncio
    async def test_invalid_board(self, engine) -> None:
        with pytest.raises(ValidationFailed, match="Invalid board code"):
            await engine.tenants.create_tenant("x@school.example.com", "X", board="ICSE")

    @pytest.mark.asyncio
    async def test_empty_email(self, engine) -> None:
        with pytest.raises(ValidationFailed):
            await engine.tenants.create_tenant("  ", "X")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["not-an-email", "a@@school.example.com", "a@nodot"])
    async def test_malformed_email(self, engine, store, email) -> None:
        with pytest.raises(ValidationFailed, match="email"):
            await engine.tenants.create_tenant(email, "X")
        assert await store.count_documents(Collection.TENANTS) == 0

    @pytest.mark.asyncio
    async def test_get_tenant_is_scoped(self, engine, make_tenant) -> None:
        tenant = await make_tenant()
        other = await make_tenant()
        assert (await engine.tenants.get_tenant(Scope.for_tenant(tenant.id), tenant.id)).id == tenant.id
        with pytest.raises(NotFound):
            await engine.tenants.get_tenant(Scope.for_tenant(other.id), tenant.id)

    @pytest.mark.asyncio
    async def test_public_dump_hides_password_hash(self, engine) -> None:
        tenant = await engine.tenants.create_tenant("safe@school.example.com", "S")
        payload = public_dump(tenant)
        assert "password_hash" not in payload
        assert payload["email"] == "safe@school.example.com"


class TestUpdateTenant:
    @pytest.mark.asyncio
    async def test_board_change_only_reaches_unset_records(
        self, engine, store, make_tenant, make_student
    ) -> None:
        tenant = await make_tenant(board=Board.CBSE_AP)
        pinned = await make_student(tenant, board=Board.CBSE_AP)
        lazy = await make_student(tenant)

        await engine.tenants.update_tenant(tenant.id, board="STATE_AP")

        pinned_doc = await store.find_one(Collection.STUDENTS, {"id": pinned.id})
        assert pinned_doc["board"] == Board.CBSE_AP
        assert await engine.resolver.resolve_board(lazy) == Board.STATE_AP

    @pytest.mark.asyncio
    async def test_propagate_board(
        self, engine, store, make_tenant, make_student, make_class, make_teacher
    ) -> None:
        tenant = await make_tenant(board=Board.CBSE_AP)
        student = await make_student(tenant, board=Board.CBSE_AP)
        school_class = await make_class(tenant)
        teacher = await make_teacher(tenant)

        updated = await engine.tenants.update_tenant(
            tenant.id, board=Board.STATE_TS, propagate_board=True
        )

        assert updated.board == Board.STATE_TS
        for collection, doc_id in (
            (Collection.STUDENTS, student.id),
            (Collection.CLASSES, school_class.id),
            (Collection.TEACHERS, teacher.id),
        ):
            doc = await store.find_one(collection, {"id": doc_id})
            assert doc["board"] == Board.STATE_TS

    @pytest.mark.asyncio
    async def test_other_fields(self, engine, make_tenant) -> None:
        tenant = await make_tenant()
        updated = await engine.tenants.update_tenant(
            tenant.id, school_name=" New Name ", is_active=False
        )
        assert updated.school_name == "New Name"
        assert updated.is_active is False

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, engine) -> None:
        with pytest.raises(NotFound):
            await engine.tenants.update_tenant("ghost", full_name="X")


class TestOverviews:
    @pytest.mark.asyncio
    async def test_list_tenants_counts(
        self, engine, make_tenant, make_student, make_teacher
    ) -> None:
        busy = await make_tenant()
        await make_tenant()
        await make_student(busy)
        await make_student(busy)
        await make_teacher(busy)

        overviews = {o.tenant.id: o for o in await engine.tenants.list_tenants()}

        assert len(overviews) == 2
        assert overviews[busy.id].students == 2
        assert overviews[busy.id].teachers == 1
        payload = overviews[busy.id].to_dict()
        assert payload["counts"]["students"] == 2
        assert "password_hash" not in payload

    @pytest.mark.asyncio
    async def test_dashboard_stats(
        self, engine, make_tenant, make_student, make_class
    ) -> None:
        tenant = await make_tenant()
        await make_student(tenant)
        await make_student(tenant, is_active=False)
        await make_class(tenant)

        stats = await engine.tenants.dashboard_stats(Scope.for_tenant(tenant.id), tenant.id)

        assert stats["total_students"] == 2
        assert stats["active_students"] == 1
        assert stats["total_classes"] == 1
        assert stats["total_exams"] == 0

    @pytest.mark.asyncio
    async def test_dashboard_stats_scoped(self, engine, make_tenant) -> None:
        tenant = await make_tenant()
        with pytest.raises(NotFound):
            await engine.tenants.dashboard_stats(Scope.for_tenant("other"), tenant.id)


class TestCreateClass:
    @pytest.mark.asyncio
    async def test_creates_with_tenant_board(self, engine, make_tenant) -> None:
        tenant = await make_tenant(board=Board.STATE_TS, school_name="Oak")
        school_class = await engine.tenants.create_class(
            Scope.for_tenant(tenant.id), tenant.id, "Class 7", "b"
        )
        assert school_class.label == "7-B"
        assert school_class.board == Board.STATE_TS
        assert school_class.school == "Oak"

    @pytest.mark.asyncio
    async def test_duplicate_section(self, engine, make_tenant) -> None:
        tenant = await make_tenant()
        scope = Scope.for_tenant(tenant.id)
        await engine.tenants.create_class(scope, tenant.id, "10", "A")
        with pytest.raises(DuplicateKey):
            await engine.tenants.create_class(scope, tenant.id, "10", "a")

    @pytest.mark.asyncio
    async def test_new_section_copies_grade_subjects(
        self, engine, make_tenant, make_class
    ) -> None:
        tenant = await make_tenant()
        await make_class(tenant, class_number="10", section="A", assigned_subjects=["m", "p"])
        created = await engine.tenants.create_class(
            Scope.for_tenant(tenant.id), tenant.id, "10", "B"
        )
        assert created.assigned_subjects == ["m", "p"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("number, section", [("ten", "A"), ("10", "AB"), ("10", "1")])
    async def test_invalid_input(self, engine, make_tenant, number, section) -> None:
        tenant = await make_tenant()
        with pytest.raises(ValidationFailed):
            await engine.tenants.create_class(
                Scope.for_tenant(tenant.id), tenant.id, number, section
            )

    @pytest.mark.asyncio
    async def test_tenant_without_board(self, engine, make_tenant) -> None:
        tenant = await make_tenant(board=None)
        with pytest.raises(BoardUnresolved):
            await engine.tenants.create_class(
                Scope.for_tenant(tenant.id), tenant.id, "10", "A"
            )


class TestCreateStudent:
    @pytest.mark.asyncio
    async def test_inherits_and_forces_reset(
        self, engine, make_tenant, make_class
    ) -> None:
        tenant = await make_tenant(board=Board.CBSE_TS, school_name="Oak")
        school_class = await make_class(tenant, class_number="9", section="C")

        student = await engine.tenants.create_student(
            Scope.for_tenant(tenant.id),
            tenant.id,
            email="Kid@School.example.com",
            full_name="Kid",
            class_id=school_class.id,
        )

        assert student.board == Board.CBSE_TS
        assert student.school_name == "Oak"
        assert student.must_reset_password is True
        assert (student.class_number, student.section) == ("9", "C")

    @pytest.mark.asyncio
    async def test_explicit_password_skips_reset(self, engine, make_tenant) -> None:
        tenant = await make_tenant()
        student = await engine.tenants.create_student(
            Scope.for_tenant(tenant.id),
            tenant.id,
            email="kid@school.example.com",
            full_name="Kid",
            password="chosen-secret",
        )
        assert student.must_reset_password is False

    @pytest.mark.asyncio
    async def test_tenant_without_board(self, engine, store, make_tenant) -> None:
        tenant = await make_tenant(board=None)
        with pytest.raises(BoardUnresolved):
            await engine.tenants.create_student(
                Scope.for_tenant(tenant.id), tenant.id, email="k@school.example.com", full_name="K"
            )
        assert await store.count_documents(Collection.STUDENTS) == 0

    @pytest.mark.asyncio
    async def test_duplicate_email(self, engine, make_tenant, make_student) -> None:
        tenant = await make_tenant()
        await make_student(tenant, email="kid@school.example.com")
        with pytest.raises(DuplicateKey):
            await engine.tenants.create_student(
                Scope.for_tenant(tenant.id), tenant.id, email="kid@school.example.com", full_name="K"
            )

    @pytest.mark.asyncio
    async def test_malformed_email(self, engine, store, make_tenant) -> None:
        tenant = await make_tenant()
        with pytest.raises(ValidationFailed, match="email"):
            await engine.tenants.create_student(
                Scope.for_tenant(tenant.id), tenant.id, email="kid-at-school", full_name="K"
            )
        assert await store.count_documents(Collection.STUDENTS) == 0

    @pytest.mark.asyncio
    async def test_foreign_class(self, engine, make_tenant, make_class) -> None:
        tenant = await make_tenant()
        foreign = await make_class(await make_tenant())
        with pytest.raises(NotFound):
            await engine.tenants.create_student(
                Scope.for_tenant(tenant.id),
                tenant.id,
                email="k@school.example.com",
                full_name="K",
                class_id=foreign.id,
            )

    @pytest.mark.asyncio
    async def test_list_students_by_class_label(
        self, engine, make_tenant, make_student
    ) -> None:
        tenant = await make_tenant()
        tenth = await make_student(tenant, class_number="10")
        await make_student(tenant, class_number="9")

        listed = await engine.tenants.list_students(
            Scope.for_tenant(tenant.id), tenant.id, "Class 10"
        )
        assert [s.id for s in listed] == [tenth.id]


class TestCreateTeacher:
    @pytest.mark.asyncio
    async def test_initial_assignments(
        self, engine, make_tenant, make_subject, make_class
    ) -> None:
        tenant = await make_tenant()
        subject = await make_subject()
        await make_class(tenant, class_number="8")

        teacher = await engine.tenants.create_teacher(
            Scope.for_tenant(tenant.id),
            tenant.id,
            email="t@school.example.com",
            full_name="T",
            subject_ids=[subject.id],
            class_refs=["8"],
        )

        assert teacher.subjects == [subject.id]
        assert teacher.assigned_class_ids == ["num:8"]

    @pytest.mark.asyncio
    async def test_malformed_email(self, engine, store, make_tenant) -> None:
        tenant = await make_tenant()
        with pytest.raises(ValidationFailed, match="email"):
            await engine.tenants.create_teacher(
                Scope.for_tenant(tenant.id), tenant.id, email="t@school", full_name="T"
            )
        assert await store.count_documents(Collection.TEACHERS) == 0

    @pytest.mark.asyncio
    async def test_bad_class_ref_removes_teacher(self, engine, store, make_tenant) -> None:
        tenant = await make_tenant()
        with pytest.raises(NotFound):
            await engine.tenants.create_teacher(
                Scope.for_tenant(tenant.id),
                tenant.id,
                email="t@school.example.com",
                full_name="T",
                class_refs=["missing-class-id"],
            )
        assert await store.count_documents(Collection.TEACHERS) == 0

    @pytest.mark.asyncio
    async def test_unknown_subject(self, engine, store, make_tenant) -> None:
        tenant = await make_tenant()
        with pytest.raises(NotFound):
            await engine.tenants.create_teacher(
                Scope.for_tenant(tenant.id),
                tenant.id,
                email="t@school.example.com",
                full_name="T",
                subject_ids=["missing"],
            )
        assert await store.count_documents(Collection.TEACHERS) == 0

    @pytest.mark.asyncio
    async def test_duplicate_email(self, engine, make_tenant, make_teacher) -> None:
        tenant = await make_tenant()
        await make_teacher(tenant, email="t@school.example.com")
        with pytest.raises(DuplicateKey):
            await engine.tenants.create_teacher(
                Scope.for_tenant(tenant.id), tenant.id, email="t@school.example.com", full_name="T"
            )
