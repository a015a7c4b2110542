"""Tests for the HTTP layer — envelope, auth, role gates and error mapping.

Uses httpx.AsyncClient with ASGITransport against the real app. Auth and
the engine are swapped through app.dependency_overrides so every test runs
on a fresh InMemoryEntityStore.
"""

import httpx
import pytest
from httpx import ASGITransport

from schoolhub.ai.insights import PerformanceInsights
from schoolhub.api.deps import get_auth_service, get_engine, get_insights
from schoolhub.hooks.auth import FakeAuthService
from schoolhub.main import app
from schoolhub.models import TIER_MAP
from schoolhub.schemas import Board, Collection

AUTH = {"Authorization": "Bearer test-token"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client(engine) -> httpx.AsyncClient:
    """Async test client over the app, wired to this test's engine."""
    app.dependency_overrides[get_engine] = lambda: engine
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def _login(role: str, user_id: str = "user-1", tenant_id: str | None = None) -> None:
    service = FakeAuthService(default_role=role, user_id=user_id, tenant_id=tenant_id)
    app.dependency_overrides[get_auth_service] = lambda: service


# ---------------------------------------------------------------------------
# Envelope & auth
# ---------------------------------------------------------------------------


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: httpx.AsyncClient) -> None:
        async with client:
            resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "data": {"status": "healthy"}, "error": None}


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_header(self, client: httpx.AsyncClient) -> None:
        async with client:
            resp = await client.get("/api/v1/super-admin/boards")
        assert resp.status_code == 401
        body = resp.json()
        assert body["ok"] is False
        assert body["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_malformed_header(self, client: httpx.AsyncClient) -> None:
        async with client:
            resp = await client.get(
                "/api/v1/super-admin/boards", headers={"Authorization": "Token abc"}
            )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_role(self, client: httpx.AsyncClient) -> None:
        _login("admin", tenant_id="t1")
        async with client:
            resp = await client.get("/api/v1/super-admin/boards", headers=AUTH)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_student_cannot_reach_admin(self, client: httpx.AsyncClient) -> None:
        _login("student", tenant_id="t1")
        async with client:
            resp = await client.get("/api/v1/admin/dashboard", headers=AUTH)
        assert resp.status_code == 403


# ---------------------------------------------------------------------------
# Super-admin
# ---------------------------------------------------------------------------


class TestSuperAdmin:
    @pytest.mark.asyncio
    async def test_boards(self, client: httpx.AsyncClient) -> None:
        _login("super-admin")
        async with client:
            resp = await client.get("/api/v1/super-admin/boards", headers=AUTH)
        codes = {board["code"] for board in resp.json()["data"]}
        assert codes == {board.value for board in Board}

    @pytest.mark.asyncio
    async def test_create_tenant_then_duplicate(self, client: httpx.AsyncClient) -> None:
        _login("super-admin")
        payload = {
            "email": "Head@Oak.example.com",
            "full_name": "Head Teacher",
            "board": "cbse_ap",
            "school_name": "Oak School",
        }
        async with client:
            created = await client.post("/api/v1/super-admin/tenants", json=payload, headers=AUTH)
            again = await client.post("/api/v1/super-admin/tenants", json=payload, headers=AUTH)

        assert created.status_code == 201
        data = created.json()["data"]
        assert data["email"] == "head@oak.example.com"
        assert data["board"] == "CBSE_AP"
        assert "password_hash" not in data
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "DUPLICATE_KEY"

    @pytest.mark.asyncio
    async def test_invalid_board_is_validation_error(self, client: httpx.AsyncClient) -> None:
        _login("super-admin")
        async with client:
            resp = await client.post(
                "/api/v1/super-admin/tenants",
                json={"email": "x@y.example.com", "full_name": "X", "board": "IB"},
                headers=AUTH,
            )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_malformed_tenant_email_is_validation_error(
        self, client: httpx.AsyncClient, store
    ) -> None:
        _login("super-admin")
        async with client:
            resp = await client.post(
                "/api/v1/super-admin/tenants",
                json={"email": "not-an-email", "full_name": "X"},
                headers=AUTH,
            )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        assert "email" in resp.json()["error"]["message"]
        assert await store.count_documents(Collection.TENANTS) == 0

    @pytest.mark.asyncio
    async def test_missing_body_field(self, client: httpx.AsyncClient) -> None:
        _login("super-admin")
        async with client:
            resp = await client.post(
                "/api/v1/super-admin/tenants", json={"email": "x@y.example.com"}, headers=AUTH
            )
        assert resp.status_code == 422
        assert resp.json()["ok"] is False

    @pytest.mark.asyncio
    async def test_delete_tenant(self, client: httpx.AsyncClient, make_tenant) -> None:
        tenant = await make_tenant()
        _login("super-admin")
        async with client:
            deleted = await client.delete(f"/api/v1/super-admin/tenants/{tenant.id}", headers=AUTH)
            residual = await client.get(
                f"/api/v1/super-admin/tenants/{tenant.id}/residual", headers=AUTH
            )
            again = await client.delete(f"/api/v1/super-admin/tenants/{tenant.id}", headers=AUTH)

        assert deleted.status_code == 200
        assert deleted.json()["data"]["tenant_id"] == tenant.id
        assert residual.json()["data"] == {}
        assert again.status_code == 404
        assert again.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_acting_on_a_tenant_requires_tenant_id(
        self, client: httpx.AsyncClient, make_tenant
    ) -> None:
        tenant = await make_tenant()
        _login("super-admin")
        async with client:
            missing = await client.get("/api/v1/admin/dashboard", headers=AUTH)
            named = await client.get(
                "/api/v1/admin/dashboard", params={"tenant_id": tenant.id}, headers=AUTH
            )
        assert missing.status_code == 400
        assert missing.json()["error"]["code"] == "TENANT_REQUIRED"
        assert named.status_code == 200
        assert named.json()["data"]["total_students"] == 0


# ---------------------------------------------------------------------------
# Tenant admin
# ---------------------------------------------------------------------------


class TestAdmin:
    @pytest.mark.asyncio
    async def test_import_csv(self, client: httpx.AsyncClient, make_tenant) -> None:
        tenant = await make_tenant()
        _login("admin", tenant_id=tenant.id)
        csv_text = (
            "name,email,phone,class\n"
            "Asha,asha@oak.example.com,555-0101,Class-10A\n"
            "Bala,not-an-email,555-0102,10A\n"
        )
        async with client:
            resp = await client.post(
                "/api/v1/admin/students/import", json={"csv": csv_text}, headers=AUTH
            )
            roster = await client.get("/api/v1/admin/students", headers=AUTH)

        assert resp.status_code == 200
        report = resp.json()["data"]
        assert report["created_count"] == 1
        assert report["classes_created_count"] == 1
        assert [error["row"] for error in report["per_row_errors"]] == [2]
        assert [s["email"] for s in roster.json()["data"]] == ["asha@oak.example.com"]

    @pytest.mark.asyncio
    async def test_import_needs_a_payload(self, client: httpx.AsyncClient, make_tenant) -> None:
        tenant = await make_tenant()
        _login("admin", tenant_id=tenant.id)
        async with client:
            resp = await client.post("/api/v1/admin/students/import", json={}, headers=AUTH)
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_create_class_and_student(self, client: httpx.AsyncClient, make_tenant) -> None:
        tenant = await make_tenant()
        _login("admin", tenant_id=tenant.id)
        async with client:
            school_class = await client.post(
                "/api/v1/admin/classes",
                json={"class_number": "9", "section": "B"},
                headers=AUTH,
            )
            class_id = school_class.json()["data"]["id"]
            student = await client.post(
                "/api/v1/admin/students",
                json={"email": "chitra@oak.example.com", "full_name": "Chitra", "class_id": class_id},
                headers=AUTH,
            )

        assert school_class.status_code == 201
        assert student.status_code == 201
        data = student.json()["data"]
        assert data["class_id"] == class_id
        assert data["must_reset_password"] is True

    @pytest.mark.asyncio
    async def test_unknown_class_is_not_found(
        self, client: httpx.AsyncClient, make_tenant
    ) -> None:
        tenant = await make_tenant()
        _login("admin", tenant_id=tenant.id)
        async with client:
            resp = await client.post(
                "/api/v1/admin/students",
                json={"email": "d@oak.example.com", "full_name": "D", "class_id": "missing"},
                headers=AUTH,
            )
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_tenant_without_board(self, client: httpx.AsyncClient, make_tenant) -> None:
        tenant = await make_tenant(board=None)
        _login("admin", tenant_id=tenant.id)
        async with client:
            resp = await client.post(
                "/api/v1/admin/classes", json={"class_number": "8"}, headers=AUTH
            )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "BOARD_UNRESOLVED"

    @pytest.mark.asyncio
    async def test_malformed_teacher_email_is_validation_error(
        self, client: httpx.AsyncClient, make_tenant
    ) -> None:
        tenant = await make_tenant()
        _login("admin", tenant_id=tenant.id)
        async with client:
            resp = await client.post(
                "/api/v1/admin/teachers",
                json={"email": "ravi@@oak.example.com", "full_name": "Ravi"},
                headers=AUTH,
            )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_teacher_classes_expand_number_refs(
        self, client: httpx.AsyncClient, make_tenant, make_class, make_teacher
    ) -> None:
        tenant = await make_tenant()
        ten_a = await make_class(tenant, class_number="10", section="A")
        nine_a = await make_class(tenant, class_number="9", section="A")
        nine_b = await make_class(tenant, class_number="9", section="B")
        teacher = await make_teacher(tenant, assigned_class_ids=["9"])
        _login("admin", tenant_id=tenant.id)
        async with client:
            classes = await client.get(
                f"/api/v1/admin/teachers/{teacher.id}/classes", headers=AUTH
            )
            nine_teachers = await client.get(
                f"/api/v1/admin/classes/{nine_b.id}/teachers", headers=AUTH
            )
            ten_teachers = await client.get(
                f"/api/v1/admin/classes/{ten_a.id}/teachers", headers=AUTH
            )

        assert classes.status_code == 200
        assert sorted(c["id"] for c in classes.json()["data"]) == sorted(
            [nine_a.id, nine_b.id]
        )
        assert [t["id"] for t in nine_teachers.json()["data"]] == [teacher.id]
        assert "password_hash" not in nine_teachers.json()["data"][0]
        assert ten_teachers.json()["data"] == []

    @pytest.mark.asyncio
    async def test_other_tenants_teacher_classes_are_hidden(
        self, client: httpx.AsyncClient, make_tenant, make_teacher
    ) -> None:
        mine = await make_tenant()
        theirs = await make_teacher(await make_tenant())
        _login("admin", tenant_id=mine.id)
        async with client:
            resp = await client.get(
                f"/api/v1/admin/teachers/{theirs.id}/classes", headers=AUTH
            )
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_other_tenants_student_is_hidden(
        self, client: httpx.AsyncClient, make_tenant, make_student
    ) -> None:
        mine = await make_tenant()
        theirs = await make_student(await make_tenant())
        _login("admin", tenant_id=mine.id)
        async with client:
            resp = await client.put(
                f"/api/v1/admin/students/{theirs.id}/subjects",
                json={"subject_ids": []},
                headers=AUTH,
            )
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Student
# ---------------------------------------------------------------------------


class TestStudent:
    @pytest.mark.asyncio
    async def test_feed_explains_empty_result(
        self, client: httpx.AsyncClient, make_tenant, make_student
    ) -> None:
        student = await make_student(await make_tenant())
        _login("student", user_id=student.id, tenant_id=student.tenant_id)
        async with client:
            resp = await client.get("/api/v1/student/feed", headers=AUTH)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["items"] == []
        assert data["reason"] == "NO_CLASS_ASSIGNED"
        assert data["message"]

    @pytest.mark.asyncio
    async def test_videos_from_school_teacher(
        self,
        client: httpx.AsyncClient,
        make_tenant,
        make_subject,
        make_class,
        make_teacher,
        make_student,
        make_video,
    ) -> None:
        tenant = await make_tenant()
        subject = await make_subject()
        school_class = await make_class(tenant, assigned_subjects=[subject.id])
        teacher = await make_teacher(
            tenant, subjects=[subject.id], assigned_class_ids=[school_class.id]
        )
        video = await make_video(teacher, subject.id)
        student = await make_student(tenant, class_id=school_class.id)
        _login("student", user_id=student.id, tenant_id=tenant.id)
        async with client:
            resp = await client.get("/api/v1/student/videos", headers=AUTH)
        data = resp.json()["data"]
        assert [item["id"] for item in data["items"]] == [video.id]
        assert data["count"] == 1

    @pytest.mark.asyncio
    async def test_ranking_not_attempted(
        self, client: httpx.AsyncClient, make_tenant, make_student, make_exam
    ) -> None:
        student = await make_student(await make_tenant())
        exam = await make_exam()
        _login("student", user_id=student.id, tenant_id=student.tenant_id)
        async with client:
            resp = await client.get(f"/api/v1/student/rankings/{exam.id}", headers=AUTH)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_ATTEMPTED"

    @pytest.mark.asyncio
    async def test_ranking(
        self, client: httpx.AsyncClient, make_tenant, make_student, make_exam, make_result
    ) -> None:
        tenant = await make_tenant()
        first = await make_student(tenant, board=Board.CBSE_AP)
        second = await make_student(tenant, board=Board.CBSE_AP)
        exam = await make_exam()
        await make_result(exam, first, 90)
        await make_result(exam, second, 60)
        _login("student", user_id=second.id, tenant_id=tenant.id)
        async with client:
            resp = await client.get(f"/api/v1/student/rankings/{exam.id}", headers=AUTH)
        data = resp.json()["data"]
        assert data["rank"] == 2
        assert data["total_students"] == 2

    @pytest.mark.asyncio
    async def test_insights_static_narrative(
        self,
        client: httpx.AsyncClient,
        store,
        make_tenant,
        make_student,
        make_exam,
        make_result,
    ) -> None:
        student = await make_student(await make_tenant())
        await make_result(await make_exam(), student, 72)
        service = PerformanceInsights(store, None, TIER_MAP["fast"])
        app.dependency_overrides[get_insights] = lambda: service
        _login("student", user_id=student.id, tenant_id=student.tenant_id)
        async with client:
            resp = await client.get("/api/v1/student/insights", headers=AUTH)
        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["analytics"]["exams_taken"] == 1
        assert data["narrative"]["source"] == "static"

    @pytest.mark.asyncio
    async def test_insights_for_unknown_student(self, client: httpx.AsyncClient, store) -> None:
        service = PerformanceInsights(store, None, TIER_MAP["fast"])
        app.dependency_overrides[get_insights] = lambda: service
        _login("student", user_id="ghost", tenant_id="t1")
        async with client:
            resp = await client.get("/api/v1/student/insights", headers=AUTH)
        assert resp.status_code == 404

