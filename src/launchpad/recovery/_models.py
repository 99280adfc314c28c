"""Data models for error recovery.

- ErrorRecord: immutable record of one failure, serialized into reports
- RollbackAction: an undo step on the rollback stack
- RollbackResult: outcome of running one undo step
- RecoveryOutcome: what the handler did about one failure
- RecoverySummary: error counts for the end-of-run summary
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

import orjson
from pydantic import BaseModel, ConfigDict

from launchpad.enums import ErrorCode, RecoveryStrategy, Severity
from launchpad.utils import get_timestamp

if TYPE_CHECKING:
    from launchpad.exceptions import LaunchpadError

type UndoCallable = Callable[[], Awaitable[object] | object]


def _jsonable(details: dict[str, Any]) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    # Coerce anything orjson can't encode natively (paths, exceptions) to str
    return orjson.loads(orjson.dumps(details, default=str))  # pyright: ignore[reportAny]


class ErrorRecord(BaseModel):
    """Immutable record of a failure.

    Severity always equals the fixed severity of ``code``; build records with
    ``ErrorRecord.create`` rather than passing severity by hand.

    Attributes:
        code: Taxonomy code.
        severity: Severity of the code.
        message: Human-readable description.
        details: JSON-safe context captured at the raise site.
        timestamp: ISO 8601 time the record was created.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    code: ErrorCode
    severity: Severity
    message: str
    details: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    timestamp: str

    @classmethod
    def create(
        cls,
        code: ErrorCode,
        message: str,
        *,
        details: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
    ) -> Self:
        """Create a record stamped with the current time."""
        return cls(
            code=code,
            severity=code.severity,
            message=message,
            details=_jsonable(details or {}),
            timestamp=get_timestamp(),
        )


@dataclass(frozen=True, slots=True)
class RollbackAction:
    """An undo step registered after a successful side effect.

    Attributes:
        description: What the step undoes.
        undo: Callable performing the undo; may be sync or async.
        registered_at: ISO 8601 registration time.
    """

    description: str
    undo: UndoCallable = field(repr=False)
    registered_at: str = field(default_factory=get_timestamp)


@dataclass(frozen=True, slots=True)
class RollbackResult:
    """Result of executing one rollback action."""

    description: str
    success: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class RecoveryOutcome:
    """What the recovery handler did about a failure.

    Attributes:
        record: The record that was handled.
        strategy: Strategy that was selected.
        success: Whether the strategy itself ran without failing.
        recovered: Whether the failure is resolved and the caller may continue.
        fatal: Whether the run must terminate.
        action: Short description of what was done.
        details: Strategy-specific data (rollback results, dump path, ...).
        retry_error: Error raised by the retry callable, if the retry failed.
    """

    record: ErrorRecord
    strategy: RecoveryStrategy
    success: bool
    recovered: bool = False
    fatal: bool = False
    action: str = ""
    details: dict[str, Any] = field(default_factory=dict)  # pyright: ignore[reportExplicitAny]
    retry_error: LaunchpadError | None = None


@dataclass(frozen=True, slots=True)
class RecoverySummary:
    """Counts of handled errors by severity and by code."""

    total: int
    by_severity: dict[Severity, int]
    by_code: dict[ErrorCode, int]
    escalations: int
