"""Phase orchestration.

Runs the phases in order, hands failing checks to the error handler, and
always writes a diagnostic report, including when the run is aborted or
cancelled.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, final

import anyio

from launchpad.enums import Phase, RecoveryStrategy, RunOutcome
from launchpad.exceptions import ArtifactWriteError, LaunchpadError
from launchpad.utils import maybe_await

from ._checks import (
    Check,
    FailurePolicy,
    cleanup_checks,
    dependency_checks,
    preflight_checks,
    service_checks,
    validation_checks,
)
from ._monitor import Monitor
from ._report import DiagnosticReport

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from pathlib import Path

    from launchpad.recovery import RecoveryOutcome

    from ._context import OrchestrationContext
    from ._monitor import SampleCallback

    type ReportCallback = Callable[[DiagnosticReport, Path | None], Awaitable[object] | object]


class RunAbortedError(Exception):
    """Internal signal that a check failed and was not recovered."""

    def __init__(self, outcome: RecoveryOutcome) -> None:
        super().__init__(outcome.record.message)
        self.outcome: RecoveryOutcome = outcome


@final
class PhaseOrchestrator:
    """Drives one run through its phases.

    Attributes:
        context: State shared by the phases.
        skip_cleanup: Leave out the cleanup phase.
        skip_install: Leave out the dependencies phase.
        report: The report of the last run, once written.
        report_path: Where that report was written, if the write succeeded.
    """

    __slots__ = ("context", "report", "report_path", "skip_cleanup", "skip_install")

    def __init__(
        self,
        context: OrchestrationContext,
        *,
        skip_cleanup: bool = False,
        skip_install: bool = False,
    ) -> None:
        self.context = context
        self.skip_cleanup = skip_cleanup
        self.skip_install = skip_install
        self.report: DiagnosticReport | None = None
        self.report_path: Path | None = None

    def plan(self) -> list[tuple[Phase, list[Check]]]:
        """Return the phases this run executes with their checks, in order."""
        ctx = self.context
        phases: list[tuple[Phase, list[Check]]] = [(Phase.PREFLIGHT, preflight_checks(ctx))]
        if not self.skip_cleanup:
            phases.append((Phase.CLEANUP, cleanup_checks(ctx)))
        if not self.skip_install:
            phases.append((Phase.DEPENDENCIES, dependency_checks(ctx)))
        phases.append((Phase.VALIDATION, validation_checks(ctx)))
        phases.append((Phase.SERVICE_START, service_checks(ctx)))
        return phases

    async def run(
        self,
        *,
        monitor: bool = False,
        monitor_iterations: int | None = None,
        on_report: ReportCallback | None = None,
        on_sample: SampleCallback | None = None,
    ) -> DiagnosticReport:
        """Run every phase, write the report and optionally start monitoring.

        The runner is entered for the duration of the call, so background
        processes started by the phases stop when it returns.

        Args:
            monitor: Start the monitor after a completed run.
            monitor_iterations: Samples to take; None monitors until cancelled.
            on_report: Called with the report and its path before monitoring.
            on_sample: Called with every monitor sample.

        Returns:
            The diagnostic report.
        """
        async with self.context.runner:
            report = await self.execute()
            if on_report is not None:
                _ = await maybe_await(on_report(report, self.report_path))
            if monitor and report.outcome is RunOutcome.COMPLETED:
                _ = await self.start_monitoring(iterations=monitor_iterations, on_sample=on_sample)
        return report

    async def execute(self) -> DiagnosticReport:
        """Run the phases and write the report; the runner must be entered."""
        ctx = self.context
        outcome = RunOutcome.COMPLETED
        ctx.logger.info("run_started", project_root=str(ctx.project_root))
        owns_hooks = not ctx.recovery.hooks_installed
        ctx.recovery.install_hooks()
        try:
            ctx.system_info = await ctx.platform.system_info()
            for phase, checks in self.plan():
                await self._run_phase(phase, checks)
        except RunAbortedError as e:
            outcome = RunOutcome.ABORTED
            ctx.logger.error(
                "run_aborted",
                phase=ctx.phases.current.value,
                code=str(e.outcome.record.code),
                strategy=e.outcome.strategy.value,
                error=e.outcome.record.message,
            )
        except anyio.get_cancelled_exc_class():
            with anyio.CancelScope(shield=True):
                ctx.logger.warning("run_interrupted", phase=ctx.phases.current.value)
                _ = self._finish(RunOutcome.INTERRUPTED)
            raise
        except Exception as e:  # noqa: BLE001
            outcome = RunOutcome.ABORTED
            ctx.errors.append(ctx.recovery.record_unhandled(e, source=ctx.phases.current.value))
            ctx.logger.error("run_crashed", phase=ctx.phases.current.value, error=str(e))
            _ = await ctx.recovery.execute_rollback()
        finally:
            if owns_hooks:
                ctx.recovery.uninstall_hooks()
        return self._finish(outcome)

    async def _run_phase(self, phase: Phase, checks: list[Check]) -> None:
        ctx = self.context
        ctx.phases.advance(phase)
        ctx.logger.info("phase_started", phase=phase.value, checks=len(checks))
        for check in checks:
            await self._run_check(phase, check)
        ctx.logger.info("phase_completed", phase=phase.value)

    async def _run_check(self, phase: Phase, check: Check) -> None:
        ctx = self.context
        try:
            await check.run(ctx)
        except LaunchpadError as e:
            match check.on_failure:
                case FailurePolicy.WARN:
                    ctx.warn(f"{check.name}: {e.message}")
                case FailurePolicy.DEGRADE:
                    context = {"phase": phase.value, "check": check.name}
                    ctx.errors.append(ctx.recovery.record_degraded(e, context))
                    ctx.logger.error(
                        "check_degraded", phase=phase.value, check=check.name, error=e.message
                    )
                case FailurePolicy.ABORT:
                    await self._recover(phase, check, e)
        else:
            ctx.logger.debug("check_passed", phase=phase.value, check=check.name)

    async def _recover(self, phase: Phase, check: Check, error: LaunchpadError) -> None:
        """Hand a failure to the error handler until it is resolved or fatal.

        A failed retry goes back to the handler under the same context, so a
        failure that keeps recurring is eventually escalated.

        Raises:
            RunAbortedError: If the failure was not recovered.
        """
        ctx = self.context
        context = {"phase": phase.value, "check": check.name}
        current = error
        while True:
            outcome = await ctx.recovery.handle(
                current,
                context,
                retry=partial(check.run, ctx),
                service_name=check.service_name,
            )
            if outcome.recovered:
                if outcome.strategy is RecoveryStrategy.IGNORE:
                    ctx.warn(f"{check.name}: {outcome.record.message}")
                else:
                    ctx.logger.info("check_recovered", phase=phase.value, check=check.name)
                return
            if outcome.retry_error is not None and not outcome.fatal:
                current = outcome.retry_error
                continue
            ctx.errors.append(outcome.record)
            raise RunAbortedError(outcome)

    def _finish(self, outcome: RunOutcome) -> DiagnosticReport:
        ctx = self.context
        report = DiagnosticReport.from_context(ctx, outcome)
        self.report = report
        try:
            self.report_path = report.write(ctx.path(ctx.config.report.dir))
        except ArtifactWriteError as e:
            self.report_path = None
            ctx.logger.error("report_write_failed", path=str(e.path), error=e.message)
        else:
            ctx.logger.info(
                "run_finished",
                outcome=outcome.value,
                status=report.status.value,
                report=str(self.report_path),
                duration_ms=report.duration_ms,
            )
        return report

    async def start_monitoring(
        self,
        *,
        iterations: int | None = None,
        on_sample: SampleCallback | None = None,
    ) -> Monitor:
        """Enter the monitoring phase and sample until done or cancelled.

        Args:
            iterations: Samples to take; None runs until cancelled.
            on_sample: Called with every sample.

        Returns:
            The monitor, holding its recent samples.
        """
        ctx = self.context
        ctx.phases.advance(Phase.MONITORING)
        settings = ctx.config.monitoring
        monitor = Monitor(
            ports=ctx.ports,
            runner=ctx.runner,
            interval=settings.interval,
            memory_threshold=settings.memory_threshold,
            cpu_threshold=settings.cpu_threshold,
            watched=[ctx.dev_server.id] if ctx.dev_server is not None else [],
            on_sample=on_sample,
            sleep=ctx.sleep,
            logger=ctx.logger,
        )
        await monitor.run(iterations=iterations)
        return monitor
