"""launchpad exceptions.

Errors that take part in recovery carry an ``ErrorCode`` assigned where they
are raised. ``to_record()`` turns them into the immutable ``ErrorRecord`` kept
in the run's error log.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from launchpad.enums import ErrorCode, Severity

if TYPE_CHECKING:
    from pathlib import Path

    from launchpad.recovery import ErrorRecord
    from launchpad.runner import CommandResult


class LaunchpadError(Exception):
    """Base exception for launchpad errors.

    Attributes:
        code: Taxonomy code for this failure.
        details: Free-form context attached at the raise site.
    """

    default_code: ClassVar[ErrorCode] = ErrorCode.SYSTEM_INIT_FAILED

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
    ) -> None:
        """Initialize with a message, an optional code override, and context."""
        super().__init__(message)
        self.message: str = message
        self.code: ErrorCode = code if code is not None else self.default_code
        self.details: dict[str, Any] = dict(details or {})  # pyright: ignore[reportExplicitAny]

    @property
    def severity(self) -> Severity:
        """Return the fixed severity of this error's code."""
        return self.code.severity

    def to_record(self) -> ErrorRecord:
        """Build an immutable error record for the run's error log."""
        from launchpad.recovery import ErrorRecord  # noqa: PLC0415

        return ErrorRecord.create(self.code, self.message, details=self.details)


# =============================================================================
# Configuration
# =============================================================================


class ConfigError(LaunchpadError):
    """Base exception for configuration errors."""

    default_code: ClassVar[ErrorCode] = ErrorCode.SYSTEM_CONFIG_INVALID


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(
            message,
            details={"path": str(path) if path else None, "line": line, "column": column},
        )
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when merged configuration values fail validation."""

    def __init__(
        self,
        message: str,
        *,
        errors: list[dict[str, Any]] | None = None,  # pyright: ignore[reportExplicitAny]
        source: str | None = None,
    ) -> None:
        """Initialize with the individual validation errors."""
        super().__init__(message, details={"errors": errors or [], "source": source})
        self.errors: list[dict[str, Any]] = errors or []  # pyright: ignore[reportExplicitAny]
        self.source: str | None = source


# =============================================================================
# Platform
# =============================================================================


class PlatformError(LaunchpadError):
    """Base exception for platform adapter failures."""


class DirectoryRemovalError(PlatformError):
    """Raised when a directory tree cannot be removed."""

    default_code: ClassVar[ErrorCode] = ErrorCode.COMMAND_PERMISSION_DENIED

    def __init__(self, message: str, *, path: Path, cause: OSError | None = None) -> None:
        """Initialize with the path that could not be removed."""
        super().__init__(message, details={"path": str(path)})
        self.path: Path = path
        self.cause: OSError | None = cause


# =============================================================================
# Command execution
# =============================================================================


class CommandError(LaunchpadError):
    """Base exception for command execution failures.

    Attributes:
        command: Rendered command line that failed.
    """

    default_code: ClassVar[ErrorCode] = ErrorCode.COMMAND_EXECUTION_FAILED

    def __init__(
        self,
        message: str,
        *,
        command: str,
        details: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
    ) -> None:
        """Initialize with the failing command."""
        super().__init__(message, details={"command": command, **(details or {})})
        self.command: str = command


class CommandFailedError(CommandError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, message: str, *, command: str, result: CommandResult) -> None:
        """Initialize with the captured result of the failed command."""
        super().__init__(
            message,
            command=command,
            details={"exit_code": result.exit_code, "stderr": result.stderr[-2000:]},
        )
        self.result: CommandResult = result


class CommandTimeoutError(CommandError):
    """Raised when a command exceeds its timeout and is terminated."""

    default_code: ClassVar[ErrorCode] = ErrorCode.PROCESS_TIMEOUT

    def __init__(self, message: str, *, command: str, timeout: float) -> None:
        """Initialize with the timeout that was exceeded."""
        super().__init__(message, command=command, details={"timeout_ms": int(timeout * 1000)})
        self.timeout: float = timeout


class CommandNotFoundError(CommandError):
    """Raised when the executable cannot be found."""

    default_code: ClassVar[ErrorCode] = ErrorCode.COMMAND_NOT_FOUND


class CommandPermissionError(CommandError):
    """Raised when the executable cannot be run due to permissions."""

    default_code: ClassVar[ErrorCode] = ErrorCode.COMMAND_PERMISSION_DENIED


class CommandSpawnError(CommandError):
    """Raised when the process cannot be spawned for another OS reason."""

    default_code: ClassVar[ErrorCode] = ErrorCode.PROCESS_START_FAILED


class RetriesExhaustedError(CommandError):
    """Raised when every attempt of a retried command failed.

    Attributes:
        attempts: Number of attempts made.
        history: One entry per failed attempt.
        last_error: The error raised by the final attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str,
        attempts: int,
        history: list[dict[str, Any]],  # pyright: ignore[reportExplicitAny]
        last_error: CommandError,
    ) -> None:
        """Initialize with the full attempt history."""
        super().__init__(
            message,
            command=command,
            details={
                "attempts": attempts,
                "history": history,
                "last_error": last_error.message,
            },
        )
        self.attempts: int = attempts
        self.history: list[dict[str, Any]] = history  # pyright: ignore[reportExplicitAny]
        self.last_error: CommandError = last_error


class ProcessNotFoundError(LaunchpadError, KeyError):
    """Raised when a process id is not in the runner's process table."""

    def __init__(self, message: str, *, process_id: str) -> None:
        """Initialize with the unknown process id."""
        super().__init__(message, details={"process_id": process_id})
        self.process_id: str = process_id

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Ports
# =============================================================================


class PortError(LaunchpadError):
    """Base exception for port management failures."""

    default_code: ClassVar[ErrorCode] = ErrorCode.PORT_UNAVAILABLE


class PortUnavailableError(PortError):
    """Raised when a required port could not be reserved."""

    def __init__(self, message: str, *, service_name: str, port: int) -> None:
        """Initialize with the service and port involved."""
        super().__init__(message, details={"service": service_name, "port": port})
        self.service_name: str = service_name
        self.port: int = port


class NoPortInRangeError(PortError):
    """Raised when no free port exists in a scanned range."""

    def __init__(self, message: str, *, start: int, end: int) -> None:
        """Initialize with the scanned range."""
        super().__init__(message, details={"start": start, "end": end})
        self.start: int = start
        self.end: int = end


# =============================================================================
# Orchestration
# =============================================================================


class OrchestrationError(LaunchpadError):
    """Base exception for phase orchestration failures."""


class PhaseTransitionError(OrchestrationError):
    """Raised when a phase transition would move backwards."""


class CheckFailedError(OrchestrationError):
    """Raised by a phase check whose condition does not hold."""


class InstallStrategiesExhaustedError(OrchestrationError):
    """Raised when every dependency installation strategy failed."""

    default_code: ClassVar[ErrorCode] = ErrorCode.SYSTEM_INIT_FAILED


class ServiceUnreachableError(OrchestrationError):
    """Raised when a started service never answers its health endpoint."""

    default_code: ClassVar[ErrorCode] = ErrorCode.NETWORK_UNAVAILABLE


# =============================================================================
# Artifacts
# =============================================================================


class ArtifactWriteError(LaunchpadError):
    """Raised when a report or dump file cannot be written."""

    default_code: ClassVar[ErrorCode] = ErrorCode.SYSTEM_SHUTDOWN_ERROR

    def __init__(self, message: str, *, path: Path, cause: Exception | None = None) -> None:
        """Initialize with the destination path."""
        super().__init__(message, details={"path": str(path)})
        self.path: Path = path
        self.cause: Exception | None = cause
