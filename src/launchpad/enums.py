"""Enumeration types for launchpad.

The error taxonomy is closed: every ``ErrorCode`` member carries its category
and severity as fixed attributes, so severity is never computed from message
text and there is no "unknown" bucket.
"""

from enum import Enum, StrEnum
from typing import Self


class Severity(StrEnum):
    """Error severity levels, ordered from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Return the numeric rank of this severity (1 = low, 4 = critical)."""
        return _SEVERITY_RANKS[self]


_SEVERITY_RANKS: dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class ErrorCategory(StrEnum):
    """Top-level groups of the error taxonomy."""

    SYSTEM = "System"
    PORT = "Port"
    PROCESS = "Process"
    COMMAND = "Command"
    NETWORK = "Network"
    DATA = "Data"


class ErrorCode(Enum):
    """Closed set of error codes.

    The enum value is the dotted label used in reports (``"Process.Timeout"``);
    ``category`` and ``severity`` are fixed per member.
    """

    category: ErrorCategory
    severity: Severity

    SYSTEM_INIT_FAILED = ("System.InitFailed", ErrorCategory.SYSTEM, Severity.CRITICAL)
    SYSTEM_SHUTDOWN_ERROR = (
        "System.ShutdownError",
        ErrorCategory.SYSTEM,
        Severity.HIGH,
    )
    SYSTEM_CONFIG_INVALID = (
        "System.ConfigInvalid",
        ErrorCategory.SYSTEM,
        Severity.CRITICAL,
    )

    PORT_UNAVAILABLE = ("Port.Unavailable", ErrorCategory.PORT, Severity.HIGH)
    PORT_BIND_FAILED = ("Port.BindFailed", ErrorCategory.PORT, Severity.HIGH)
    PORT_KILL_FAILED = ("Port.KillFailed", ErrorCategory.PORT, Severity.MEDIUM)

    PROCESS_START_FAILED = ("Process.StartFailed", ErrorCategory.PROCESS, Severity.HIGH)
    PROCESS_CRASH = ("Process.Crash", ErrorCategory.PROCESS, Severity.CRITICAL)
    PROCESS_TIMEOUT = ("Process.Timeout", ErrorCategory.PROCESS, Severity.MEDIUM)

    COMMAND_NOT_FOUND = ("Command.NotFound", ErrorCategory.COMMAND, Severity.HIGH)
    COMMAND_EXECUTION_FAILED = (
        "Command.ExecutionFailed",
        ErrorCategory.COMMAND,
        Severity.MEDIUM,
    )
    COMMAND_PERMISSION_DENIED = (
        "Command.PermissionDenied",
        ErrorCategory.COMMAND,
        Severity.HIGH,
    )

    NETWORK_UNAVAILABLE = ("Network.Unavailable", ErrorCategory.NETWORK, Severity.HIGH)
    NETWORK_REQUEST_FAILED = (
        "Network.RequestFailed",
        ErrorCategory.NETWORK,
        Severity.MEDIUM,
    )
    NETWORK_CONNECTION_LOST = (
        "Network.ConnectionLost",
        ErrorCategory.NETWORK,
        Severity.MEDIUM,
    )

    DATA_CONNECTION_FAILED = (
        "Data.ConnectionFailed",
        ErrorCategory.DATA,
        Severity.CRITICAL,
    )
    DATA_VALIDATION_FAILED = ("Data.ValidationFailed", ErrorCategory.DATA, Severity.LOW)
    DATA_CORRUPTION = ("Data.Corruption", ErrorCategory.DATA, Severity.CRITICAL)

    def __new__(cls, label: str, category: ErrorCategory, severity: Severity) -> Self:
        obj = object.__new__(cls)
        obj._value_ = label
        obj.category = category
        obj.severity = severity
        return obj

    def __str__(self) -> str:
        return str(self.value)


class RecoveryStrategy(StrEnum):
    """Recovery strategies selected by the error handler."""

    RETRY = "retry"
    ROLLBACK = "rollback"
    RESTART = "restart"
    IGNORE = "ignore"
    ESCALATE = "escalate"


class Phase(StrEnum):
    """Initialization phases in execution order."""

    PREFLIGHT = "preflight"
    CLEANUP = "cleanup"
    DEPENDENCIES = "dependencies"
    VALIDATION = "validation"
    SERVICE_START = "service_start"
    MONITORING = "monitoring"

    @property
    def index(self) -> int:
        """Return the zero-based position of this phase in the sequence."""
        return list(Phase).index(self)


class RunOutcome(StrEnum):
    """Terminal states of an orchestration run."""

    COMPLETED = "completed"
    ABORTED = "aborted"
    INTERRUPTED = "interrupted"


class ReportStatus(StrEnum):
    """Status recorded in the diagnostic report."""

    SUCCESS = "success"
    WITH_ERRORS = "with_errors"
