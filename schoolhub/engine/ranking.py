"""Ranking engine — board-wide rank and percentile for exam results.

The cohort for an exam is every active result for that exam on the
student's board, across all tenants. Results are ordered by percentage,
highest first. Ties go to the earlier completed_at, then to the lower
result id, so the order never depends on how the store happens to return
documents.

percentile = round(((total - (rank - 1)) / total) * 100), rounding halves up.

Tier 2 service: imports from hooks.interfaces, schemas, errors, engine.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from schoolhub.engine.graph import AssignmentGraph, Scope
from schoolhub.engine.inheritance import InheritanceResolver
from schoolhub.errors import NotAttempted
from schoolhub.hooks.interfaces import EntityStore
from schoolhub.schemas import Board, Collection, ExamResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ranking:
    exam_id: str
    exam_title: str
    rank: int
    total_students: int
    percentile: int
    percentage: float
    completed_at: datetime

    def to_dict(self) -> dict:
        return {
            "exam_id": self.exam_id,
            "exam_title": self.exam_title,
            "rank": self.rank,
            "total_students": self.total_students,
            "percentile": self.percentile,
            "percentage": self.percentage,
            "completed_at": self.completed_at.isoformat(),
        }


def percentile_for(rank: int, total: int) -> int:
    """Share of the cohort at or below this rank, as a whole percent."""
    if total <= 0:
        raise ValueError("Cohort must not be empty")
    return math.floor(((total - (rank - 1)) / total) * 100 + 0.5)


def cohort_order(result: ExamResult) -> tuple:
    """Sort key: percentage descending, then earlier completion, then id."""
    return (-result.percentage, result.completed_at, result.id)


class RankingEngine:
    """Ranks a student's exam results against their board cohort.

    Args:
        store: The entity store.
        resolver: Inheritance resolver for the student's board.
        graph: Used to load the student.
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

    async def _cohort(self, exam_id: str, board: Board) -> list[ExamResult]:
        docs = await self._store.find(
            Collection.EXAM_RESULTS,
            {"exam_id": exam_id, "board": board, "is_active": True},
        )
        return sorted((ExamResult.model_validate(doc) for doc in docs), key=cohort_order)

    async def _rank(self, result: ExamResult, board: Board) -> Ranking:
        cohort = await self._cohort(result.exam_id, board)
        ids = [entry.id for entry in cohort]
        if result.id not in ids:
            # The result was recorded under another board; rank it on its own.
            cohort = sorted([*cohort, result], key=cohort_order)
            ids = [entry.id for entry in cohort]
        rank = ids.index(result.id) + 1
        total = len(cohort)
        return Ranking(
            exam_id=result.exam_id,
            exam_title=result.exam_title,
            rank=rank,
            total_students=total,
            percentile=percentile_for(rank, total),
            percentage=result.percentage,
            completed_at=result.completed_at,
        )

    async def compute_ranking(self, student_id: str, exam_id: str) -> Ranking:
        """Rank and percentile of one student's result for one exam.

        Raises:
            NotFound: Unknown student.
            BoardUnresolved: The student's board can't be determined.
            NotAttempted: The student has no active result for the exam.
        """
        student = await self._graph.get_student(Scope.super_tenant(), student_id)
        board = await self._resolver.resolve_board(student)
        doc = await self._store.find_one(
            Collection.EXAM_RESULTS,
            {"exam_id": exam_id, "student_id": student.id, "is_active": True},
        )
        if doc is None:
            raise NotAttempted(f"Student {student_id} has not attempted exam {exam_id}")
        return await self._rank(ExamResult.model_validate(doc), board)

    async def all_rankings(self, student_id: str) -> list[Ranking]:
        """Rankings for every exam the student took, most recent first."""
        student = await self._graph.get_student(Scope.super_tenant(), student_id)
        board = await self._resolver.resolve_board(student)
        docs = await self._store.find(
            Collection.EXAM_RESULTS,
            {"student_id": student.id, "is_active": True},
            sort=[("completed_at", -1)],
        )
        rankings = []
        for doc in docs:
            rankings.append(await self._rank(ExamResult.model_validate(doc), board))
        return rankings
