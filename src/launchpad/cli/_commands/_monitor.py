"""The ``monitor`` command: self-check loop."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, Annotated

import anyio
from cyclopts import App, Parameter
from rich.console import Console

from launchpad.orchestrator import Monitor
from launchpad.platform import create_platform
from launchpad.ports import PortManager
from launchpad.runner import CommandRunner

from .._context import CLIContext
from .._shared import ExitCode

if TYPE_CHECKING:
    from launchpad.orchestrator import MonitorSample

app = App(
    name="monitor",
    help="Periodically check memory, CPU and port occupancy.",
    help_on_error=True,
)


def format_sample(sample: MonitorSample) -> str:
    occupied = sorted(
        name for name, health in sample.ports.services.items() if not health.available
    )
    status = "[green]ok[/green]" if sample.healthy else "[yellow]warning[/yellow]"
    line = (
        f"{sample.timestamp} {status} memory={sample.memory_percent:.0f}% "
        f"cpu={sample.cpu_percent:.0f}% occupied={','.join(occupied) or '-'}"
    )
    for warning in sample.warnings:
        line += f"\n  - {warning}"
    return line


async def run_monitor(
    cli: CLIContext,
    *,
    iterations: int | None,
    interval: float | None,
    console: Console,
) -> int:
    """Sample until ``iterations`` are done or the loop is cancelled.

    Returns:
        The number of samples with warnings.
    """
    config = cli.config
    platform = create_platform()
    monitor = Monitor(
        ports=PortManager(
            platform=platform,
            host=config.ports.host,
            well_known=config.ports.well_known,
        ),
        runner=CommandRunner(platform=platform, cwd=cli.root),
        interval=interval if interval is not None else config.monitoring.interval,
        memory_threshold=config.monitoring.memory_threshold,
        cpu_threshold=config.monitoring.cpu_threshold,
        on_sample=lambda sample: console.print(format_sample(sample)),
    )
    await monitor.run(iterations=iterations)
    return sum(1 for sample in monitor.samples if not sample.healthy)


@app.default
def monitor(
    *,
    iterations: Annotated[
        int | None,
        Parameter(help="Number of samples to take; runs until interrupted if omitted."),
    ] = None,
    interval: Annotated[
        float | None,
        Parameter(help="Seconds between samples (defaults to [monitoring] interval)."),
    ] = None,
) -> None:
    """Run the self-check loop.

    Args:
        iterations: Number of samples to take.
        interval: Seconds between samples.
    """
    console = Console()
    try:
        warnings = anyio.run(
            partial(
                run_monitor,
                CLIContext.get_current(),
                iterations=iterations,
                interval=interval,
                console=console,
            )
        )
    except KeyboardInterrupt:
        raise SystemExit(ExitCode.INTERRUPTED) from None
    raise SystemExit(ExitCode.WITH_ERRORS if warnings else ExitCode.SUCCESS)
