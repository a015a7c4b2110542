"""Student API routes — what the signed-in student can see and how they rank.

The student is always the caller: there is no student_id parameter. Empty
lists are normal responses; ``data.reason`` says why nothing is visible
(e.g. NO_TEACHER_FOR_SUBJECT).

Tier 3 orchestration module: imports from deps, engine, ai, schemas.
"""

from fastapi import APIRouter, Depends

from schoolhub.ai.insights import PerformanceInsights
from schoolhub.api.deps import get_engine, get_insights, require_role
from schoolhub.engine.container import Engine
from schoolhub.engine.graph import Scope
from schoolhub.schemas import ApiResponse, User

router = APIRouter()

_student = require_role("student")


def _ok(data: object) -> dict:
    return ApiResponse(ok=True, data=data).model_dump()


@router.get("/videos")
async def videos(
    subject: str | None = None,
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    result = await engine.visibility.visible_videos(user.id, subject)
    return _ok(result.to_dict())


@router.get("/assessments")
async def assessments(
    subject: str | None = None,
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    result = await engine.visibility.visible_assessments(user.id, subject)
    return _ok(result.to_dict())


@router.get("/content")
async def exclusive_content(
    subject: str | None = None,
    content_type: str | None = None,
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    result = await engine.visibility.exclusive_content(user.id, subject, content_type)
    return _ok(result.to_dict())


@router.get("/feed")
async def feed(
    subject: str | None = None,
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    result = await engine.visibility.feed(user.id, subject)
    return _ok(result.to_dict())


@router.get("/subjects")
async def subjects(
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    result = await engine.visibility.visible_subjects(user.id)
    return _ok(result.to_dict())


@router.get("/exams")
async def exams(
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    result = await engine.visibility.visible_exams(user.id)
    return _ok(result.to_dict())


@router.get("/results")
async def results(
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    entries = await engine.exams.results_for_student(user.id)
    return _ok([entry.model_dump(mode="json") for entry in entries])


@router.get("/rankings")
async def all_rankings(
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    rankings = await engine.ranking.all_rankings(user.id)
    return _ok([ranking.to_dict() for ranking in rankings])


@router.get("/rankings/{exam_id}")
async def ranking(
    exam_id: str,
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
) -> dict:
    """Rank and percentile for one exam. NOT_ATTEMPTED if never taken."""
    result = await engine.ranking.compute_ranking(user.id, exam_id)
    return _ok(result.to_dict())


@router.get("/insights")
async def insights(
    user: User = Depends(_student),
    engine: Engine = Depends(get_engine),
    service: PerformanceInsights = Depends(get_insights),
) -> dict:
    """Exam analytics plus a short narrative (AI or static fallback)."""
    await engine.graph.get_student(Scope.super_tenant(), user.id)
    insight = await service.for_student(user.id)
    return _ok(insight.to_dict())
