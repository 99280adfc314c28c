"""Diagnostic report and end-of-run summary."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, ClassVar, Self

import orjson
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from rich.table import Table

from launchpad.enums import Phase, ReportStatus, RunOutcome, Severity
from launchpad.recovery import ErrorRecord
from launchpad.utils import get_timestamp, write_json_atomic

if TYPE_CHECKING:
    from pathlib import Path

    from rich.console import Console

    from launchpad.platform import SystemInfo
    from launchpad.recovery import RecoverySummary

    from ._context import OrchestrationContext

_REPORT_CONFIG = ConfigDict(
    frozen=True,
    extra="ignore",
    alias_generator=to_camel,
    populate_by_name=True,
)


class ReportSystemInfo(BaseModel):
    """Host details as written to the report."""

    model_config: ClassVar[ConfigDict] = _REPORT_CONFIG

    os: str
    arch: str
    cpu_count: int
    memory_total: int
    python_version: str
    os_version: str | None = None


class DiagnosticReport(BaseModel):
    """Outcome of one run, written as ``init-report-<run_id>.json``.

    Field names are camelCase in JSON.

    Attributes:
        run_id: Identifier of the run.
        timestamp: ISO 8601 time the report was built.
        duration_ms: Wall time of the run.
        final_phase: Last phase entered.
        status: SUCCESS when there are no unrecovered errors.
        outcome: COMPLETED, ABORTED or INTERRUPTED.
        errors: Unrecovered and degraded errors.
        warnings: Warnings, oldest first.
        fixes_applied: Fixes applied, oldest first.
        system_info: Host details, if they were gathered.
    """

    model_config: ClassVar[ConfigDict] = _REPORT_CONFIG

    run_id: str
    timestamp: str
    duration_ms: int
    final_phase: Phase
    status: ReportStatus
    outcome: RunOutcome
    errors: list[ErrorRecord] = []
    warnings: list[str] = []
    fixes_applied: list[str] = []
    system_info: ReportSystemInfo | None = None

    @classmethod
    def from_context(cls, ctx: OrchestrationContext, outcome: RunOutcome) -> Self:
        """Build the report for the current state of a run."""
        return cls(
            run_id=ctx.run_id,
            timestamp=get_timestamp(),
            duration_ms=ctx.elapsed_ms(),
            final_phase=ctx.phases.current,
            status=ReportStatus.WITH_ERRORS if ctx.errors else ReportStatus.SUCCESS,
            outcome=outcome,
            errors=list(ctx.errors),
            warnings=list(ctx.warnings),
            fixes_applied=list(ctx.fixes),
            system_info=_system_info(ctx.system_info),
        )

    @classmethod
    def from_json(cls, data: bytes | str) -> Self:
        return cls.model_validate_json(data)

    def to_dict(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2)

    def filename(self) -> str:
        return f"init-report-{self.run_id}.json"

    def write(self, directory: Path) -> Path:
        """Write the report into ``directory`` and return its path.

        Raises:
            ArtifactWriteError: If the file cannot be written.
        """
        path = directory / self.filename()
        write_json_atomic(path, self.to_dict())
        return path


def _system_info(info: SystemInfo | None) -> ReportSystemInfo | None:
    if info is None:
        return None
    return ReportSystemInfo.model_validate(asdict(info))


_SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}

_OUTCOME_STYLES = {
    RunOutcome.COMPLETED: "green",
    RunOutcome.ABORTED: "red",
    RunOutcome.INTERRUPTED: "yellow",
}


def print_summary(
    console: Console,
    report: DiagnosticReport,
    summary: RecoverySummary,
    *,
    report_path: Path | None = None,
) -> None:
    """Print a short run summary with error counts by severity."""
    style = _OUTCOME_STYLES[report.outcome]
    console.print(
        f"[{style}]Run {report.run_id} {report.outcome.value}[/{style}] "
        f"in phase [bold]{report.final_phase.value}[/bold] "
        f"({report.duration_ms / 1000:.1f}s)"
    )

    table = Table(title="Errors by severity", show_edge=False)
    table.add_column("Severity")
    table.add_column("Handled", justify="right")
    table.add_column("Unrecovered", justify="right")
    unrecovered = {s: 0 for s in Severity}
    for record in report.errors:
        unrecovered[record.severity] += 1
    for severity in sorted(Severity, key=lambda s: s.rank, reverse=True):
        table.add_row(
            f"[{_SEVERITY_STYLES[severity]}]{severity.value}[/]",
            str(summary.by_severity.get(severity, 0)),
            str(unrecovered[severity]),
        )
    console.print(table)

    if report.fixes_applied:
        console.print(f"[green]Fixes applied:[/green] {len(report.fixes_applied)}")
        for fix in report.fixes_applied:
            console.print(f"  - {fix}")
    if report.warnings:
        console.print(f"[yellow]Warnings:[/yellow] {len(report.warnings)}")
        for warning in report.warnings:
            console.print(f"  - {warning}")
    if summary.escalations:
        console.print(f"[bold red]Escalations:[/bold red] {summary.escalations}")
    if report_path is not None:
        console.print(f"Report: {report_path}")
