"""Exams, questions, results and exam analytics.

Exam ownership follows created_by_role:
  - "admin" exams belong to the author's tenant and use the tenant's board.
  - "super-admin" exams have no tenant and are visible board-wide.

A result stamps two tenant keys: tenant_id (the student's tenant, which
recorded it) and exam_tenant_id (the exam's author, None for super-admin
exams). Cascade deletion sweeps both.

Tier 2 service: imports from hooks.interfaces, schemas, errors, engine.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Literal

from schoolhub.engine.catalog import parse_board
from schoolhub.engine.graph import AssignmentGraph, Scope
from schoolhub.engine.inheritance import InheritanceResolver
from schoolhub.errors import (
    CrossBoardViolation,
    DuplicateKey,
    NotFound,
    ValidationFailed,
)
from schoolhub.hooks.interfaces import EntityStore
from schoolhub.schemas import (
    Board,
    Collection,
    Exam,
    ExamResult,
    Question,
    Student,
    User,
)

logger = logging.getLogger(__name__)

EXAM_TYPES = ("weekend", "mains", "advanced", "practice")
TOP_PERFORMERS = 10


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


class ExamService:
    """Creates exams and results, and aggregates exam statistics.

    Args:
        store: The entity store.
        resolver: Tenant lookup and student board resolution.
        graph: Scoped student loading.
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

    async def get_exam(self, exam_id: str) -> Exam:
        doc = await self._store.find_one(Collection.EXAMS, {"id": exam_id})
        if doc is None:
            raise NotFound(f"Exam {exam_id} not found")
        return Exam.model_validate(doc)

    async def create_exam(
        self,
        author: User,
        *,
        title: str,
        board: str | Board | None = None,
        exam_type: Literal["weekend", "mains", "advanced", "practice"] = "weekend",
        description: str = "",
        duration: int = 60,
        total_questions: int = 0,
        total_marks: int = 100,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> Exam:
        """Creates an exam owned according to the author's role.

        Admin authors get their tenant's board; a board argument that
        disagrees with it is rejected. Super-admin authors must name a board.

        Raises:
            ValidationFailed: Bad role, type, dates or missing board.
            NotFound: The admin's tenant does not exist.
            BoardUnresolved: The admin's tenant has no board.
            CrossBoardViolation: Admin asked for a board other than its own.
        """
        if not title.strip():
            raise ValidationFailed("Exam title is required")
        if exam_type not in EXAM_TYPES:
            raise ValidationFailed(
                f"Invalid exam type {exam_type!r}. Valid options: {', '.join(EXAM_TYPES)}"
            )
        if start_date and end_date and end_date < start_date:
            raise ValidationFailed("Exam end date is before its start date")

        if author.role == "super-admin":
            if board is None:
                raise ValidationFailed("Super-admin exams must name a board")
            exam_board = parse_board(board)
            tenant_id = None
        elif author.role == "admin":
            if not author.tenant_id:
                raise ValidationFailed("Admin exams require the author's tenant")
            tenant = await self._resolver.require_tenant_board(author.tenant_id)
            exam_board = tenant.board
            if board is not None and parse_board(board) != exam_board:
                raise CrossBoardViolation(
                    f"Tenant board is {exam_board.value}; cannot create an exam "
                    f"for {parse_board(board).value}"
                )
            tenant_id = tenant.id
        else:
            raise ValidationFailed(f"Role {author.role} cannot create exams")

        exam = Exam(
            title=title.strip(),
            board=exam_board,
            created_by=author.id,
            created_by_role=author.role,
            tenant_id=tenant_id,
            description=description,
            exam_type=exam_type,
            duration=duration,
            total_questions=total_questions,
            total_marks=total_marks,
            start_date=start_date,
            end_date=end_date,
        )
        await self._store.insert(Collection.EXAMS, exam.model_dump())
        logger.info(
            "Created %s exam %s on %s (tenant %s)",
            exam.created_by_role,
            exam.id,
            exam.board.value,
            exam.tenant_id,
        )
        return exam

    async def exams_for_tenant(self, tenant_id: str) -> list[Exam]:
        """The tenant's own exams plus super-admin exams for its board."""
        tenant = await self._resolver.get_tenant(tenant_id)
        clauses: list[dict] = [{"tenant_id": tenant.id}]
        if tenant.board is not None:
            clauses.append({"created_by_role": "super-admin", "board": tenant.board})
        docs = await self._store.find(
            Collection.EXAMS,
            {"is_active": True, "$or": clauses},
            sort=[("created_at", -1)],
        )
        return [Exam.model_validate(doc) for doc in docs]

    async def add_question(
        self,
        exam_id: str,
        *,
        text: str,
        options: list[str],
        correct_answer: str,
        marks: int = 1,
    ) -> Question:
        """Adds a question and bumps the exam's question count.

        Raises:
            NotFound: Unknown exam.
            ValidationFailed: Empty text, or the answer is not an option.
        """
        exam = await self.get_exam(exam_id)
        if not text.strip():
            raise ValidationFailed("Question text is required")
        if options and correct_answer not in options:
            raise ValidationFailed("Correct answer must be one of the options")
        question = Question(
            exam_id=exam.id,
            tenant_id=exam.tenant_id,
            text=text.strip(),
            options=options,
            correct_answer=correct_answer,
            marks=marks,
        )
        await self._store.insert(Collection.QUESTIONS, question.model_dump())
        count = await self._store.count_documents(
            Collection.QUESTIONS, {"exam_id": exam.id}
        )
        await self._store.update_one(
            Collection.EXAMS, {"id": exam.id}, {"total_questions": count}
        )
        return question

    async def record_result(
        self,
        scope: Scope,
        *,
        exam_id: str,
        student_id: str,
        obtained_marks: float,
        total_marks: float | None = None,
        time_taken: int = 0,
        completed_at: datetime | None = None,
    ) -> ExamResult:
        """Records a student's attempt.

        Raises:
            NotFound: Student outside scope, unknown or inactive exam, or an
                admin exam from another tenant.
            BoardUnresolved: The student's board can't be determined.
            CrossBoardViolation: A super-admin exam for another board.
            ValidationFailed: Marks out of range.
            DuplicateKey: The student already has a result for this exam.
        """
        student = await self._graph.get_student(scope, student_id)
        board = await self._resolver.resolve_board(student)
        exam = await self.get_exam(exam_id)
        if not exam.is_active:
            raise NotFound(f"Exam {exam_id} not found")
        if exam.created_by_role == "admin" and exam.tenant_id != student.tenant_id:
            raise NotFound(f"Exam {exam_id} not found")
        if Board.parse(exam.board) != board:
            raise CrossBoardViolation(
                f"Exam {exam.title} is for board {exam.board.value}, "
                f"student is on {board.value}"
            )

        out_of = float(total_marks if total_marks is not None else exam.total_marks)
        if out_of <= 0 or obtained_marks < 0 or obtained_marks > out_of:
            raise ValidationFailed(
                f"Obtained marks {obtained_marks} out of range for total {out_of}"
            )

        result = ExamResult(
            exam_id=exam.id,
            student_id=student.id,
            tenant_id=student.tenant_id,
            exam_tenant_id=exam.tenant_id,
            board=board,
            exam_title=exam.title,
            percentage=round(obtained_marks / out_of * 100, 2),
            obtained_marks=obtained_marks,
            total_marks=out_of,
            time_taken=time_taken,
        )
        if completed_at is not None:
            result.completed_at = completed_at
        try:
            await self._store.insert(Collection.EXAM_RESULTS, result.model_dump())
        except DuplicateKey as exc:
            raise DuplicateKey(
                exc.collection,
                exc.fields,
                f"Student {student.email} already has a result for {exam.title}",
            ) from exc
        return result

    async def deactivate_result(self, scope: Scope, result_id: str) -> ExamResult:
        """Soft-deletes a result. Results are otherwise immutable."""
        doc = await self._store.find_one(Collection.EXAM_RESULTS, {"id": result_id})
        if doc is None or not scope.owns(doc.get("tenant_id")):
            raise NotFound(f"Exam result {result_id} not found")
        await self._store.update_one(
            Collection.EXAM_RESULTS, {"id": result_id}, {"is_active": False}
        )
        return ExamResult.model_validate({**doc, "is_active": False})

    async def results_for_student(self, student_id: str) -> list[ExamResult]:
        docs = await self._store.find(
            Collection.EXAM_RESULTS,
            {"student_id": student_id, "is_active": True},
            sort=[("completed_at", -1)],
        )
        return [ExamResult.model_validate(doc) for doc in docs]

    # -- analytics ---------------------------------------------------------

    async def exam_performance(
        self, scope: Scope, tenant_id: str, exam_id: str
    ) -> dict:
        """Attempt and score breakdown of one exam for one tenant's students."""
        if not scope.owns(tenant_id):
            raise NotFound(f"Tenant {tenant_id} not found")
        tenant = await self._resolver.require_tenant_board(tenant_id)
        exam = await self.get_exam(exam_id)

        student_docs, result_docs = await asyncio.gather(
            self._store.find(
                Collection.STUDENTS,
                # Students without a board yet inherit the tenant's.
                {"tenant_id": tenant.id, "board": {"$in": [tenant.board, None]}},
            ),
            self._store.find(
                Collection.EXAM_RESULTS,
                {
                    "exam_id": exam.id,
                    "tenant_id": tenant.id,
                    "board": tenant.board,
                    "is_active": True,
                },
            ),
        )
        students = {doc["id"]: Student.model_validate(doc) for doc in student_docs}
        results = sorted(
            (
                ExamResult.model_validate(doc)
                for doc in result_docs
                if doc["student_id"] in students
            ),
            key=lambda r: (-r.percentage, r.completed_at, r.id),
        )

        top = [
            {
                "rank": index,
                "student_name": students[r.student_id].full_name,
                "student_email": students[r.student_id].email,
                "class_number": students[r.student_id].class_number,
                "percentage": r.percentage,
                "marks": f"{r.obtained_marks:g}/{r.total_marks:g}",
                "completed_at": r.completed_at.isoformat(),
            }
            for index, r in enumerate(results[:TOP_PERFORMERS], start=1)
        ]

        by_class: dict[str, list[ExamResult]] = defaultdict(list)
        for r in results:
            by_class[students[r.student_id].class_number].append(r)
        class_performance = [
            {
                "class_number": class_number,
                "students_attempted": len(entries),
                "average_score": _mean([e.percentage for e in entries]),
                "students": [
                    {
                        "name": students[e.student_id].full_name,
                        "percentage": e.percentage,
                    }
                    for e in entries
                ],
            }
            for class_number, entries in sorted(by_class.items())
        ]

        return {
            "exam_id": exam.id,
            "exam_title": exam.title,
            "total_students": len(students),
            "attempted_count": len(results),
            "not_attempted_count": len(students) - len(results),
            "average_score": _mean([r.percentage for r in results]),
            "top_performers": top,
            "class_performance": class_performance,
        }

    async def board_analytics(self) -> list[dict]:
        """Per-board participation across every tenant."""

        async def one(board: Board) -> dict:
            students, exams, result_docs = await asyncio.gather(
                self._store.count_documents(Collection.STUDENTS, {"board": board}),
                self._store.count_documents(
                    Collection.EXAMS, {"board": board, "is_active": True}
                ),
                self._store.find(
                    Collection.EXAM_RESULTS, {"board": board, "is_active": True}
                ),
            )
            participants = {doc["student_id"] for doc in result_docs}
            return {
                "board": board.value,
                "students": students,
                "exams": exams,
                "attempts": len(result_docs),
                "average_score": _mean([doc["percentage"] for doc in result_docs]),
                "participation_rate": (
                    round(len(participants) / students * 100, 2) if students else 0.0
                ),
            }

        return list(await asyncio.gather(*(one(board) for board in Board)))
