"""Shared CLI utilities: exit codes and consoles."""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Never

from rich.console import Console

from launchpad.config import CONFIG_ERROR_EXIT
from launchpad.enums import ReportStatus, RunOutcome

if TYPE_CHECKING:
    from launchpad.orchestrator import DiagnosticReport

__all__ = [
    "ExitCode",
    "exit_code_for",
    "exit_with_error",
    "get_error_console",
]


class ExitCode(IntEnum):
    """Process exit codes for launchpad commands."""

    SUCCESS = 0
    WITH_ERRORS = 1
    ABORTED = 2
    CONFIG_ERROR = CONFIG_ERROR_EXIT
    INTERRUPTED = 130


def exit_code_for(report: DiagnosticReport) -> ExitCode:
    """Map a run report to the process exit code."""
    match report.outcome:
        case RunOutcome.INTERRUPTED:
            return ExitCode.INTERRUPTED
        case RunOutcome.ABORTED:
            return ExitCode.ABORTED
        case RunOutcome.COMPLETED if report.status is ReportStatus.WITH_ERRORS:
            return ExitCode.WITH_ERRORS
        case _:
            return ExitCode.SUCCESS


def get_error_console() -> Console:
    """Get a Rich console configured for error output to stderr."""
    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.ABORTED,
    *,
    console: Console | None = None,
) -> Never:
    """Print an error message and exit with the specified code.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(code)
