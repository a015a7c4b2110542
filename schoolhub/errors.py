"""Engine error taxonomy.

Every rejection the engine can produce is one of these. Each carries an
uppercase ``code`` (mirrored into ApiError.code by the HTTP layer) and a
human-readable ``message``. An empty-but-valid result is never an error:
resolvers return an empty list with a reason instead.

Tier 1 leaf module: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class EngineError(Exception):
    """Base class for all engine rejections.

    Attributes:
        code: Stable machine-readable error code.
        message: Human-readable reason.
    """

    code = "ENGINE_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFound(EngineError):
    """Entity absent, or not owned by the caller's tenant."""

    code = "NOT_FOUND"


class BoardUnresolved(EngineError):
    """Neither the entity nor its tenant has a board."""

    code = "BOARD_UNRESOLVED"


class DuplicateKey(EngineError):
    """A unique or compound-unique index rejected a write.

    Often recoverable: re-read the record that won.

    Attributes:
        collection: Collection name where the conflict happened.
        fields: The indexed fields that collided.
    """

    code = "DUPLICATE_KEY"

    def __init__(
        self, collection: str, fields: tuple[str, ...], message: str | None = None
    ) -> None:
        self.collection = collection
        self.fields = fields
        super().__init__(
            message
            or f"Duplicate key in {collection} on ({', '.join(fields)})"
        )


class CrossBoardViolation(EngineError):
    """A subject or class from one board was assigned to another board."""

    code = "CROSS_BOARD_VIOLATION"


class NotAttempted(EngineError):
    """Ranking requested for an exam the student has no result for."""

    code = "NOT_ATTEMPTED"


class ValidationFailed(EngineError):
    """Malformed input rejected before touching the store."""

    code = "VALIDATION_ERROR"


@dataclass(frozen=True)
class StepFailure:
    """One failed unit inside a batch or saga.

    Attributes:
        step: Name of the failing unit (saga step, row label).
        reason: Human-readable failure description.
    """

    step: str
    reason: str


class PartialFailure(EngineError):
    """Aggregate failure for a multi-unit operation that was not rolled back.

    Attributes:
        failures: Every unit that failed.
        succeeded: Whatever did complete (shape depends on the operation).
    """

    code = "PARTIAL_FAILURE"

    def __init__(
        self, message: str, failures: list[StepFailure], succeeded: Any = None
    ) -> None:
        self.failures = failures
        self.succeeded = succeeded
        super().__init__(message)
