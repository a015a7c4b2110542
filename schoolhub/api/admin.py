"""Tenant admin API routes — roster, assignments, exams, analytics.

Every endpoint acts on one tenant: the admin's own, or for the super-admin
the tenant named by the ``tenant_id`` query parameter (see
deps.get_tenant_context). Entities of other tenants are reported as
NOT_FOUND.

Tier 3 orchestration module: imports from deps, engine, schemas.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr

from schoolhub.api.deps import TenantContext, get_engine, get_tenant_context
from schoolhub.engine.container import Engine
from schoolhub.engine.tenants import public_dump
from schoolhub.errors import NotFound, ValidationFailed
from schoolhub.schemas import ApiResponse

router = APIRouter()


# ---------------------------------------------------------------------------
# Request bodies (API-boundary types, local to this module)
# ---------------------------------------------------------------------------


class CreateStudentRequest(BaseModel):
    email: EmailStr
    full_name: str
    phone: str = ""
    class_id: str | None = None
    password: str | None = None


class ImportStudentsRequest(BaseModel):
    """Either raw CSV text or already-parsed rows."""

    csv: str | None = None
    rows: list[dict[str, str]] | None = None


class CreateTeacherRequest(BaseModel):
    email: EmailStr
    full_name: str
    phone: str = ""
    subject_ids: list[str] = []
    class_refs: list[str] = []
    password: str | None = None


class SubjectIdsRequest(BaseModel):
    subject_ids: list[str]


class ClassRefsRequest(BaseModel):
    class_refs: list[str]


class AssignClassRequest(BaseModel):
    class_id: str


class CreateClassRequest(BaseModel):
    class_number: str
    section: str = "A"


class CreateExamRequest(BaseModel):
    title: str
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


class RecordResultRequest(BaseModel):
    student_id: str
    obtained_marks: float
    total_marks: float | None = None
    time_taken: int = 0
    completed_at: datetime | None = None


def _ok(data: object) -> dict:
    return ApiResponse(ok=True, data=data).model_dump()


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


@router.get("/dashboard")
async def dashboard(
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    return _ok(await engine.tenants.dashboard_stats(ctx.scope, ctx.tenant_id))


# ---------------------------------------------------------------------------
# Students
# ---------------------------------------------------------------------------


@router.get("/students")
async def list_students(
    class_number: str | None = None,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    students = await engine.tenants.list_students(ctx.scope, ctx.tenant_id, class_number)
    return _ok([public_dump(student) for student in students])


@router.post("/students", status_code=201)
async def create_student(
    body: CreateStudentRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    student = await engine.tenants.create_student(
        ctx.scope, ctx.tenant_id, **body.model_dump()
    )
    return _ok(public_dump(student))


@router.post("/students/import")
async def import_students(
    body: ImportStudentsRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    """Bulk import. Row failures are reported in data, not as an error."""
    if body.csv is not None:
        report = await engine.importer.import_csv(ctx.tenant_id, body.csv)
    elif body.rows is not None:
        report = await engine.importer.import_students(ctx.tenant_id, body.rows)
    else:
        raise ValidationFailed("Send either csv text or rows")
    return _ok(report.to_dict())


@router.put("/students/{student_id}/class")
async def assign_class_to_student(
    student_id: str,
    body: AssignClassRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    student = await engine.graph.assign_class_to_student(
        ctx.scope, student_id, body.class_id
    )
    return _ok(public_dump(student))


@router.put("/students/{student_id}/subjects")
async def assign_subjects_to_student(
    student_id: str,
    body: SubjectIdsRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    student = await engine.graph.assign_subjects_to_student(
        ctx.scope, student_id, body.subject_ids
    )
    return _ok(public_dump(student))


# ---------------------------------------------------------------------------
# Teachers
# ---------------------------------------------------------------------------


@router.get("/teachers")
async def list_teachers(
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    teachers = await engine.tenants.list_teachers(ctx.scope, ctx.tenant_id)
    return _ok([public_dump(teacher) for teacher in teachers])


@router.post("/teachers", status_code=201)
async def create_teacher(
    body: CreateTeacherRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    teacher = await engine.tenants.create_teacher(
        ctx.scope, ctx.tenant_id, **body.model_dump()
    )
    return _ok(public_dump(teacher))


@router.put("/teachers/{teacher_id}/subjects")
async def assign_subjects_to_teacher(
    teacher_id: str,
    body: SubjectIdsRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    teacher = await engine.graph.assign_subjects_to_teacher(
        ctx.scope, teacher_id, body.subject_ids
    )
    return _ok(public_dump(teacher))


@router.put("/teachers/{teacher_id}/classes")
async def assign_classes_to_teacher(
    teacher_id: str,
    body: ClassRefsRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    teacher = await engine.graph.assign_classes_to_teacher(
        ctx.scope, teacher_id, body.class_refs
    )
    return _ok(public_dump(teacher))


@router.get("/teachers/{teacher_id}/classes")
async def teacher_classes(
    teacher_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    """Class sections the teacher's refs cover, number refs expanded."""
    teacher = await engine.graph.get_teacher(ctx.scope, teacher_id)
    classes = await engine.graph.classes_for_teacher(teacher)
    return _ok([school_class.model_dump(mode="json") for school_class in classes])


@router.get("/classes/{class_id}/teachers")
async def class_teachers(
    class_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    school_class = await engine.graph.get_class(ctx.scope, class_id)
    teachers = await engine.graph.teachers_for_class(school_class.tenant_id, school_class)
    return _ok([public_dump(teacher) for teacher in teachers])


# ---------------------------------------------------------------------------
# Classes & subjects
# ---------------------------------------------------------------------------


@router.get("/classes")
async def list_classes(
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    await engine.tenants.get_tenant(ctx.scope, ctx.tenant_id)
    classes = await engine.graph.classes_for_tenant(ctx.tenant_id)
    return _ok([c.model_dump(mode="json") for c in classes])


@router.post("/classes", status_code=201)
async def create_class(
    body: CreateClassRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    school_class = await engine.tenants.create_class(
        ctx.scope, ctx.tenant_id, body.class_number, body.section
    )
    return _ok(school_class.model_dump(mode="json"))


@router.put("/classes/{class_number}/subjects")
async def assign_subjects_to_class_number(
    class_number: str,
    body: SubjectIdsRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    """Assigns subjects to every section of one class number."""
    updated = await engine.graph.assign_subjects_to_class_number(
        ctx.scope, ctx.tenant_id, class_number, body.subject_ids
    )
    return _ok({"class_number": class_number, "updated_sections": updated})


@router.get("/subjects")
async def list_subjects(
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    """The subject catalog of the tenant's board."""
    tenant = await engine.tenants.get_tenant(ctx.scope, ctx.tenant_id)
    if tenant.board is None:
        return _ok([])
    subjects = await engine.catalog.subjects_for_board(tenant.board)
    return _ok([subject.model_dump(mode="json") for subject in subjects])


# ---------------------------------------------------------------------------
# Exams
# ---------------------------------------------------------------------------


@router.get("/exams")
async def list_exams(
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    """The tenant's exams plus super-admin exams for its board."""
    await engine.tenants.get_tenant(ctx.scope, ctx.tenant_id)
    exams = await engine.exams.exams_for_tenant(ctx.tenant_id)
    return _ok([exam.model_dump(mode="json") for exam in exams])


@router.post("/exams", status_code=201)
async def create_exam(
    body: CreateExamRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    author = ctx.user
    if author.role == "super-admin":
        # Acting for a tenant: the exam belongs to that tenant.
        author = author.model_copy(update={"role": "admin", "tenant_id": ctx.tenant_id})
    exam = await engine.exams.create_exam(author, **body.model_dump())
    return _ok(exam.model_dump(mode="json"))


@router.post("/exams/{exam_id}/questions", status_code=201)
async def add_question(
    exam_id: str,
    body: AddQuestionRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    exam = await engine.exams.get_exam(exam_id)
    if exam.tenant_id != ctx.tenant_id:
        raise NotFound(f"Exam {exam_id} not found")
    question = await engine.exams.add_question(exam_id, **body.model_dump())
    return _ok(question.model_dump(mode="json"))


@router.post("/exams/{exam_id}/results", status_code=201)
async def record_result(
    exam_id: str,
    body: RecordResultRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    result = await engine.exams.record_result(
        ctx.scope, exam_id=exam_id, **body.model_dump()
    )
    return _ok(result.model_dump(mode="json"))


@router.delete("/results/{result_id}")
async def deactivate_result(
    result_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    result = await engine.exams.deactivate_result(ctx.scope, result_id)
    return _ok(result.model_dump(mode="json"))


@router.get("/exams/{exam_id}/performance")
async def exam_performance(
    exam_id: str,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: Engine = Depends(get_engine),
) -> dict:
    return _ok(await engine.exams.exam_performance(ctx.scope, ctx.tenant_id, exam_id))
