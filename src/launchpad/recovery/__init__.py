"""Error classification, recovery strategies and rollback.

Key Components:
    - ErrorRecord: Immutable record of a failure
    - ErrorHandler: Strategy selection, rollback stack, emergency dumps
    - RecoveryOutcome: Result of handling one failure
    - RollbackAction / RollbackResult: Undo steps and their results
"""

from launchpad.enums import ErrorCategory, ErrorCode, RecoveryStrategy, Severity

from ._handler import ESCALATION_THRESHOLD, ErrorHandler
from ._hooks import ProcessHooks
from ._models import (
    ErrorRecord,
    RecoveryOutcome,
    RecoverySummary,
    RollbackAction,
    RollbackResult,
    UndoCallable,
)

__all__ = [
    "ESCALATION_THRESHOLD",
    "ErrorCategory",
    "ErrorCode",
    "ErrorHandler",
    "ErrorRecord",
    "ProcessHooks",
    "RecoveryOutcome",
    "RecoveryStrategy",
    "RecoverySummary",
    "RollbackAction",
    "RollbackResult",
    "Severity",
    "UndoCallable",
]
