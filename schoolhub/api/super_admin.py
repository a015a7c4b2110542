"""Super-admin API routes — tenants, board catalog, board-wide exams.

The super-tenant manages every tenant and owns everything board-scoped:
subjects, exclusive content and super-admin exams.

All responses use the ApiResponse envelope. Engine errors are mapped to
status codes by the global handler in main.py.

Tier 3 orchestration module: imports from deps, engine, schemas.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr

from schoolhub.api.deps import get_engine, require_role
from schoolhub.engine.container import Engine
from schoolhub.engine.tenants import public_dump
from schoolhub.schemas import BOARD_NAMES, ApiResponse, User

router = APIRouter()

_super_admin = require_role("super-admin")


# ---------------------------------------------------------------------------
# Request bodies (API-boundary types, local to this module)
# ---------------------------------------------------------------------------


class CreateTenantRequest(BaseModel):
    email: EmailStr
    full_name: str
    board: str | None = None
    school_name: str = ""
    password: str | None = None


class UpdateTenantRequest(BaseModel):
    full_name: str | None = None
    board: str | None = None
    school_name: str | None = None
    is_active: bool | None = None
    propagate_board: bool = False


class CreateSubjectRequest(BaseModel):
    name: str
    board: str
    class_number: str | None = None
    code: str | None = None
    description: str = ""


class UploadContentRequest(BaseModel):
    title: str
    board: str
    subject_id: str
    content_type: str
    file_url: str
    description: str = ""
    topic: str = ""
    thumbnail_url: str = ""
    duration: int = 0


class CreateExamRequest(BaseModel):
    title: str
    board: str
    exam_type: Literal["weekend", "mains", "advanced", "practice"] = "weekend"
    description: str = ""
    duration: int = 60
    total_questions: int = 0
    total_marks: int = 100
    start_date: datetime | None = None
    end_date: datetime | None = None


class AddQuestionRequest(BaseModel):
    text: str
    options: list[str] = []
    correct_answer: str = ""
    marks: int = 1


def _ok(data: object) -> dict:
    return ApiResponse(ok=True, data=data).model_dump()


# ---------------------------------------------------------------------------
# Boards
# ---------------------------------------------------------------------------


@router.get("/boards")
async def list_boards(user: User = Depends(_super_admin)) -> dict:
    return _ok([{"code": board.value, "name": name} for board, name in BOARD_NAMES.items()])


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------


@router.post("/tenants", status_code=201)
async def create_tenant(
    body: CreateTenantRequest,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    tenant = await engine.tenants.create_tenant(
        body.email,
        body.full_name,
        board=body.board,
        school_name=body.school_name,
        password=body.password,
    )
    return _ok(public_dump(tenant))


@router.get("/tenants")
async def list_tenants(
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    overviews = await engine.tenants.list_tenants()
    return _ok([overview.to_dict() for overview in overviews])


@router.patch("/tenants/{tenant_id}")
async def update_tenant(
    tenant_id: str,
    body: UpdateTenantRequest,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    tenant = await engine.tenants.update_tenant(
        tenant_id,
        full_name=body.full_name,
        board=body.board,
        school_name=body.school_name,
        is_active=body.is_active,
        propagate_board=body.propagate_board,
    )
    return _ok(public_dump(tenant))


@router.delete("/tenants/{tenant_id}")
async def delete_tenant(
    tenant_id: str,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    """Cascade-deletes the tenant. Partial failures surface as PARTIAL_FAILURE."""
    report = await engine.cascade.delete_tenant(tenant_id)
    return _ok(report.to_dict())


@router.get("/tenants/{tenant_id}/residual")
async def tenant_residual(
    tenant_id: str,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    """Documents still referencing a tenant id. Empty after a clean delete."""
    return _ok(await engine.cascade.verify_tenant_purged(tenant_id))


# ---------------------------------------------------------------------------
# Subjects & exclusive content
# ---------------------------------------------------------------------------


@router.post("/subjects", status_code=201)
async def create_subject(
    body: CreateSubjectRequest,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    subject = await engine.catalog.create_subject(
        body.name,
        body.board,
        class_number=body.class_number,
        code=body.code,
        description=body.description,
    )
    return _ok(subject.model_dump(mode="json"))


@router.get("/subjects")
async def list_subjects(
    board: str,
    include_inactive: bool = False,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    subjects = await engine.catalog.subjects_for_board(
        board, include_inactive=include_inactive
    )
    return _ok([subject.model_dump(mode="json") for subject in subjects])


@router.delete("/subjects/{subject_id}")
async def deactivate_subject(
    subject_id: str,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    subject = await engine.catalog.deactivate_subject(subject_id)
    return _ok(subject.model_dump(mode="json"))


@router.post("/content", status_code=201)
async def upload_content(
    body: UploadContentRequest,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    content = await engine.catalog.upload_content(**body.model_dump())
    return _ok(content.model_dump(mode="json"))


@router.get("/content")
async def list_content(
    board: str,
    subject_id: str | None = None,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    contents = await engine.catalog.content_for_board(board, subject_id)
    return _ok([content.model_dump(mode="json") for content in contents])


# ---------------------------------------------------------------------------
# Board-wide exams & analytics
# ---------------------------------------------------------------------------


@router.post("/exams", status_code=201)
async def create_exam(
    body: CreateExamRequest,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    exam = await engine.exams.create_exam(user, **body.model_dump())
    return _ok(exam.model_dump(mode="json"))


@router.post("/exams/{exam_id}/questions", status_code=201)
async def add_question(
    exam_id: str,
    body: AddQuestionRequest,
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    question = await engine.exams.add_question(exam_id, **body.model_dump())
    return _ok(question.model_dump(mode="json"))


@router.get("/analytics/boards")
async def board_analytics(
    user: User = Depends(_super_admin),
    engine: Engine = Depends(get_engine),
) -> dict:
    return _ok(await engine.exams.board_analytics())
