"""Cascade deletion — remove a tenant and everything scoped to it.

Modelled as a saga, not a transaction:

  1. Read phase: load the tenant (for its email) and the ids of every exam
     the tenant authored, since results for those exams may carry another
     tenant's id and are only reachable through exam_id.
  2. Sweep phase: an ordered list of idempotent SagaSteps, each one
     delete_many over one collection with one filter, run concurrently.
     A step that raises is recorded and the others still run.
  3. Verification: read the tenant back by id and by email. Anything that
     survived (e.g. a duplicate document under the same email) is removed
     with a targeted delete-by-email, so the email is reusable immediately.

Nothing is rolled back. Step failures surface as one PartialFailure that
carries both the failures and the report of what was deleted. Every step is
safe to re-run, so retrying delete_tenant after a partial failure resumes
the sweep.

Tier 2 service: imports from hooks.interfaces, schemas, errors.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from schoolhub.errors import NotFound, PartialFailure, StepFailure
from schoolhub.hooks.interfaces import EntityStore, Query
from schoolhub.schemas import Collection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SagaStep:
    """One idempotent sweep: delete everything in collection matching query."""

    name: str
    collection: Collection
    query: Query


@dataclass
class CascadeReport:
    """What one delete_tenant call removed.

    Attributes:
        tenant_id: The deleted tenant.
        email: The tenant's email, if the tenant record was found.
        deleted: Step name → number of documents removed.
        verification_deleted: Documents removed by the verification pass.
        residual: Collection → documents still referencing the tenant id
            after the sweep. Empty on success.
    """

    tenant_id: str
    email: str | None = None
    deleted: dict[str, int] = field(default_factory=dict)
    verification_deleted: int = 0
    residual: dict[str, int] = field(default_factory=dict)

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values()) + self.verification_deleted

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "email": self.email,
            "deleted": dict(self.deleted),
            "total_deleted": self.total_deleted,
            "verification_deleted": self.verification_deleted,
            "residual": dict(self.residual),
        }


# Every (collection, field) pair that can reference a tenant id.
TENANT_REFERENCES: list[tuple[Collection, str]] = [
    (Collection.STUDENTS, "tenant_id"),
    (Collection.TEACHERS, "tenant_id"),
    (Collection.CLASSES, "tenant_id"),
    (Collection.VIDEOS, "tenant_id"),
    (Collection.ASSESSMENTS, "tenant_id"),
    (Collection.EXAMS, "tenant_id"),
    (Collection.QUESTIONS, "tenant_id"),
    (Collection.EXAM_RESULTS, "tenant_id"),
    (Collection.EXAM_RESULTS, "exam_tenant_id"),
    (Collection.STREAMS, "tenant_id"),
    (Collection.TENANTS, "id"),
]


def build_saga(tenant_id: str, authored_exam_ids: list[str]) -> list[SagaStep]:
    """The ordered sweep for one tenant."""
    steps = [
        SagaStep("students", Collection.STUDENTS, {"tenant_id": tenant_id}),
        SagaStep("teachers", Collection.TEACHERS, {"tenant_id": tenant_id}),
        SagaStep("classes", Collection.CLASSES, {"tenant_id": tenant_id}),
        SagaStep("videos", Collection.VIDEOS, {"tenant_id": tenant_id}),
        SagaStep("assessments", Collection.ASSESSMENTS, {"tenant_id": tenant_id}),
        SagaStep("questions", Collection.QUESTIONS, {"tenant_id": tenant_id}),
        SagaStep("exams", Collection.EXAMS, {"tenant_id": tenant_id}),
        SagaStep(
            "exam_results_recorded", Collection.EXAM_RESULTS, {"tenant_id": tenant_id}
        ),
        SagaStep(
            "exam_results_authored",
            Collection.EXAM_RESULTS,
            {"exam_tenant_id": tenant_id},
        ),
        SagaStep("streams", Collection.STREAMS, {"tenant_id": tenant_id}),
        SagaStep("tenant", Collection.TENANTS, {"id": tenant_id}),
    ]
    if authored_exam_ids:
        steps.insert(
            6,
            SagaStep(
                "exam_questions",
                Collection.QUESTIONS,
                {"exam_id": {"$in": authored_exam_ids}},
            ),
        )
        steps.insert(
            -1,
            SagaStep(
                "exam_results_by_exam",
                Collection.EXAM_RESULTS,
                {"exam_id": {"$in": authored_exam_ids}},
            ),
        )
    return steps


class CascadeDeleter:
    """Runs the tenant deletion saga against an entity store."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    async def _run_step(self, step: SagaStep) -> int:
        return await self._store.delete_many(step.collection, step.query)

    async def delete_tenant(self, tenant_id: str) -> CascadeReport:
        """Deletes a tenant and every document scoped to it.

        A tenant whose record is already gone but whose data is not (an
        earlier call failed part-way) is swept again.

        Returns:
            The report, with an empty ``residual`` map.

        Raises:
            NotFound: No tenant record and nothing referencing the id.
            PartialFailure: One or more sweeps failed. ``succeeded`` holds
                the CascadeReport of what was removed.
        """
        tenant_doc = await self._store.find_one(Collection.TENANTS, {"id": tenant_id})
        if tenant_doc is None and not await self.verify_tenant_purged(tenant_id):
            raise NotFound(f"Tenant {tenant_id} not found")

        report = CascadeReport(
            tenant_id=tenant_id, email=tenant_doc.get("email") if tenant_doc else None
        )
        authored = await self._store.find(Collection.EXAMS, {"tenant_id": tenant_id})
        steps = build_saga(tenant_id, [exam["id"] for exam in authored])

        outcomes = await asyncio.gather(
            *(self._run_step(step) for step in steps), return_exceptions=True
        )

        failures: list[StepFailure] = []
        for step, outcome in zip(steps, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(
                    "Cascade step %s failed for tenant %s: %s", step.name, tenant_id, outcome
                )
                failures.append(StepFailure(step=step.name, reason=str(outcome)))
            else:
                report.deleted[step.name] = outcome

        report.verification_deleted = await self._verify_tenant_record(
            tenant_id, report.email
        )
        report.residual = await self.verify_tenant_purged(tenant_id)

        if failures:
            raise PartialFailure(
                f"Tenant {tenant_id} deletion incomplete: "
                f"{len(failures)} of {len(steps)} steps failed",
                failures=failures,
                succeeded=report,
            )
        if report.residual:
            logger.warning(
                "Tenant %s still referenced after cascade: %s", tenant_id, report.residual
            )

        logger.info(
            "Deleted tenant %s (%s): %d documents removed",
            tenant_id,
            report.email,
            report.total_deleted,
        )
        return report

    async def _verify_tenant_record(self, tenant_id: str, email: str | None) -> int:
        """Re-reads the tenant and deletes any survivor. Returns documents removed."""
        removed = 0
        if await self._store.find_one(Collection.TENANTS, {"id": tenant_id}):
            logger.warning("Tenant %s survived the sweep, deleting by id", tenant_id)
            removed += await self._store.delete_many(Collection.TENANTS, {"id": tenant_id})
        if email and await self._store.find_one(Collection.TENANTS, {"email": email}):
            logger.warning(
                "Tenant email %s still in use after sweep, deleting by email", email
            )
            removed += await self._store.delete_many(Collection.TENANTS, {"email": email})
        return removed

    async def verify_tenant_purged(self, tenant_id: str) -> dict[str, int]:
        """Counts documents still referencing the tenant id.

        Returns:
            "collection.field" → count, only for non-zero counts.
        """
        counts = await asyncio.gather(
            *(
                self._store.count_documents(collection, {field_name: tenant_id})
                for collection, field_name in TENANT_REFERENCES
            )
        )
        return {
            f"{collection.value}.{field_name}": count
            for (collection, field_name), count in zip(TENANT_REFERENCES, counts)
            if count
        }
