"""Performance insights — local exam analytics plus a short AI narrative.

The numbers are always computed locally from the student's exam results.
The AI provider only turns them into two or three encouraging sentences.
If no provider is configured, or the call fails, times out, or returns
nothing, the narrative is a static text built from the same numbers, and
the ContentBlock says so (source="static").

Tier 3 orchestrator: imports from ai.providers, ai.usage, schemas, models,
hooks.interfaces.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from schoolhub.ai.providers.base import AIProvider
from schoolhub.ai.usage import log_ai_call
from schoolhub.hooks.interfaces import EntityStore
from schoolhub.models import ModelConfig
from schoolhub.schemas import Collection, ContentBlock, ExamResult

logger = logging.getLogger(__name__)

PASS_MARK = 50.0
TREND_THRESHOLD = 5.0  # percentage points between first and second half

_SYSTEM_PROMPT = (
    "You are a supportive school tutor. Given a student's exam statistics, "
    "write two or three short sentences: one on what is going well, one on "
    "what to focus on next. Do not invent numbers. Plain text, no lists."
)


def performance_band(average: float) -> str:
    if average >= 85:
        return "excellent"
    if average >= 75:
        return "good"
    if average >= 60:
        return "average"
    if average >= 40:
        return "below average"
    return "needs attention"


@dataclass(frozen=True)
class StudentAnalytics:
    """Aggregate view of one student's active exam results."""

    exams_taken: int
    average: float
    pass_rate: float
    best_exam: str | None
    best_score: float | None
    worst_exam: str | None
    worst_score: float | None
    trend: str
    band: str

    def to_dict(self) -> dict:
        return {
            "exams_taken": self.exams_taken,
            "average": self.average,
            "pass_rate": self.pass_rate,
            "best_exam": self.best_exam,
            "best_score": self.best_score,
            "worst_exam": self.worst_exam,
            "worst_score": self.worst_score,
            "trend": self.trend,
            "band": self.band,
        }


def build_analytics(results: list[ExamResult]) -> StudentAnalytics:
    """Computes analytics from results in any order."""
    if not results:
        return StudentAnalytics(
            exams_taken=0,
            average=0.0,
            pass_rate=0.0,
            best_exam=None,
            best_score=None,
            worst_exam=None,
            worst_score=None,
            trend="insufficient data",
            band="no data",
        )

    ordered = sorted(results, key=lambda r: (r.completed_at, r.id))
    scores = [r.percentage for r in ordered]
    average = round(sum(scores) / len(scores), 2)
    best = max(ordered, key=lambda r: r.percentage)
    worst = min(ordered, key=lambda r: r.percentage)
    passed = sum(1 for score in scores if score >= PASS_MARK)

    trend = "insufficient data"
    if len(scores) >= 2:
        half = len(scores) // 2
        earlier = sum(scores[:half]) / half
        later = sum(scores[half:]) / (len(scores) - half)
        if later - earlier >= TREND_THRESHOLD:
            trend = "improving"
        elif earlier - later >= TREND_THRESHOLD:
            trend = "declining"
        else:
            trend = "steady"

    return StudentAnalytics(
        exams_taken=len(scores),
        average=average,
        pass_rate=round(passed / len(scores) * 100, 2),
        best_exam=best.exam_title or best.exam_id,
        best_score=best.percentage,
        worst_exam=worst.exam_title or worst.exam_id,
        worst_score=worst.percentage,
        trend=trend,
        band=performance_band(average),
    )


def static_narrative(analytics: StudentAnalytics) -> str:
    if analytics.exams_taken == 0:
        return "No exam results yet. Take an exam to see your performance insights."
    text = (
        f"You have taken {analytics.exams_taken} exam"
        f"{'s' if analytics.exams_taken != 1 else ''} with an average of "
        f"{analytics.average:.1f}% ({analytics.band}). "
        f"Your strongest result was {analytics.best_exam} "
        f"({analytics.best_score:.1f}%)."
    )
    if analytics.exams_taken > 1:
        text += (
            f" Focus next on the material from {analytics.worst_exam} "
            f"({analytics.worst_score:.1f}%)."
        )
    if analytics.trend in ("improving", "declining"):
        text += f" Your recent scores are {analytics.trend}."
    return text


def _user_prompt(analytics: StudentAnalytics) -> str:
    lines = [f"{key}: {value}" for key, value in analytics.to_dict().items()]
    return "Student exam statistics:\n" + "\n".join(lines)


@dataclass(frozen=True)
class Insight:
    analytics: StudentAnalytics
    narrative: ContentBlock

    def to_dict(self) -> dict:
        return {
            "analytics": self.analytics.to_dict(),
            "narrative": self.narrative.model_dump(),
        }


class PerformanceInsights:
    """Builds insights for a student.

    Args:
        store: The entity store (exam results are read from it).
        provider: AI provider, or None to always serve static text.
        model_config: Model used for the narrative.
        timeout_seconds: Upper bound on the AI call.
    """

    def __init__(
        self,
        store: EntityStore,
        provider: AIProvider | None,
        model_config: ModelConfig,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._store = store
        self._provider = provider
        self._model_config = model_config
        self._timeout = timeout_seconds

    async def for_student(self, student_id: str) -> Insight:
        docs = await self._store.find(
            Collection.EXAM_RESULTS, {"student_id": student_id, "is_active": True}
        )
        analytics = build_analytics([ExamResult.model_validate(doc) for doc in docs])
        return Insight(analytics, await self._narrate(student_id, analytics))

    async def _narrate(self, student_id: str, analytics: StudentAnalytics) -> ContentBlock:
        static = ContentBlock(source="static", content=static_narrative(analytics))
        if self._provider is None or analytics.exams_taken == 0:
            return static

        start_time = time.monotonic()
        try:
            async with asyncio.timeout(self._timeout):
                text, usage = await self._provider.complete(
                    system_prompt=_SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": _user_prompt(analytics)}],
                    model_config=self._model_config,
                )
        except Exception as exc:
            logger.warning("Insights AI call failed, serving static text: %s", exc)
            log_ai_call(
                model_id=self._model_config.model_id,
                prompt_tokens=0,
                completion_tokens=0,
                latency_ms=(time.monotonic() - start_time) * 1000,
                student_id=student_id,
                call_type="insights",
                fallback=True,
            )
            return static

        log_ai_call(
            model_id=self._model_config.model_id,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            latency_ms=(time.monotonic() - start_time) * 1000,
            student_id=student_id,
            call_type="insights",
            fallback=not text.strip(),
        )
        if not text.strip():
            return static
        family = "claude" if self._model_config.provider == "anthropic" else "gemini"
        return ContentBlock(source="ai", content=text.strip(), model_family=family)
