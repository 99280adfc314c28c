"""The ``run`` command: full initialization sequence."""

from __future__ import annotations

import signal
from functools import partial
from typing import TYPE_CHECKING, Annotated

import anyio
from cyclopts import App, Parameter
from rich.console import Console

from launchpad.orchestrator import (
    OrchestrationContext,
    PhaseOrchestrator,
    new_run_id,
    print_summary,
)
from launchpad.runner import ConsoleEventSink
from launchpad.utils import create_run_logger

from .._context import CLIContext
from .._shared import ExitCode, exit_code_for

if TYPE_CHECKING:
    from pathlib import Path

    from launchpad.orchestrator import DiagnosticReport
    from launchpad.utils import RunLog

app = App(
    name="run",
    help="Prepare the project and start its services.",
    help_on_error=True,
)


async def _cancel_on_signal(scope: anyio.CancelScope, interrupted: list[bool]) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for _signum in signals:
            interrupted.append(True)
            scope.cancel()
            return


def create_run_context(cli: CLIContext, console: Console) -> tuple[RunLog, OrchestrationContext]:
    """Open the run log and wire up the orchestration context for a CLI run."""
    config = cli.config
    root = cli.root
    run_id = new_run_id()
    run_log = create_run_logger(
        root / config.logging.dir,
        run_id,
        level="debug" if cli.verbose else config.logging.level.value,
        log_format=config.logging.format.value,
    )
    if cli.config_error:
        run_log.logger.warning("config_load_failed", error=cli.config_error)

    ctx = OrchestrationContext.create(
        config,
        project_root=root,
        run_id=run_id,
        logger=run_log.logger,
        sink=ConsoleEventSink(console) if cli.verbose else None,
    )
    return run_log, ctx


async def run_orchestration(
    ctx: OrchestrationContext,
    *,
    log_path: Path | None = None,
    monitor: bool = False,
    skip_cleanup: bool = False,
    skip_install: bool = False,
    console: Console | None = None,
) -> ExitCode:
    """Run the phases for a prepared context.

    SIGINT and SIGTERM cancel the run; the partial report is still written
    and the exit code is INTERRUPTED.

    Returns:
        The process exit code for the run.
    """
    console = console or Console()
    orchestrator = PhaseOrchestrator(ctx, skip_cleanup=skip_cleanup, skip_install=skip_install)
    shown: list[DiagnosticReport] = []

    def show(report: DiagnosticReport, path: Path | None) -> None:
        shown.append(report)
        print_summary(console, report, ctx.recovery.summary(), report_path=path)

    console.print(f"[bold]launchpad[/bold] run {ctx.run_id} in {ctx.project_root}")
    if log_path is not None:
        console.print(f"Log: {log_path}")

    interrupted: list[bool] = []
    async with anyio.create_task_group() as tg:
        tg.start_soon(_cancel_on_signal, tg.cancel_scope, interrupted)
        _ = await orchestrator.run(
            monitor=monitor or ctx.config.monitoring.enabled,
            on_report=show,
        )
        tg.cancel_scope.cancel()

    report = orchestrator.report
    if report is None:
        return ExitCode.INTERRUPTED
    if not shown or shown[-1] is not report:
        show(report, orchestrator.report_path)
    if interrupted:
        return ExitCode.INTERRUPTED
    return exit_code_for(report)


@app.default
def run(
    *,
    monitor: Annotated[
        bool,
        Parameter(help="Keep monitoring the environment after a successful run."),
    ] = False,
    skip_cleanup: Annotated[
        bool,
        Parameter(name="--skip-cleanup", help="Leave caches and build output in place."),
    ] = False,
    skip_install: Annotated[
        bool,
        Parameter(name="--skip-install", help="Do not install dependencies."),
    ] = False,
) -> None:
    """Run preflight, cleanup, dependencies, validation and service start.

    Exit codes: 0 completed, 1 completed with errors, 2 aborted,
    3 configuration error, 130 interrupted.

    Uncaught exceptions from any thread or task are recorded by the run's
    error handler for as long as the command runs, and an exception that
    escapes the run itself leaves an emergency dump behind.

    Args:
        monitor: Keep monitoring after a successful run.
        skip_cleanup: Skip the cleanup phase.
        skip_install: Skip the dependencies phase.
    """
    console = Console()
    run_log, ctx = create_run_context(CLIContext.get_current(), console)
    ctx.recovery.install_hooks()
    try:
        code = anyio.run(
            partial(
                run_orchestration,
                ctx,
                log_path=run_log.path,
                monitor=monitor,
                skip_cleanup=skip_cleanup,
                skip_install=skip_install,
                console=console,
            )
        )
    except Exception as e:
        _ = ctx.recovery.record_unhandled(e, source="cli")
        raise
    finally:
        ctx.recovery.uninstall_hooks()
        run_log.close()
    raise SystemExit(code)
