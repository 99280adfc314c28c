"""The ``ports`` command: well-known port health."""

from __future__ import annotations

from typing import TYPE_CHECKING

import anyio
from cyclopts import App
from rich.console import Console
from rich.table import Table

from launchpad.platform import create_platform
from launchpad.ports import PortManager

from .._context import CLIContext
from .._shared import ExitCode

if TYPE_CHECKING:
    from launchpad.ports import PortHealthSnapshot

app = App(
    name="ports",
    help="Show which well-known service ports are free.",
    help_on_error=True,
)


def snapshot_table(snapshot: PortHealthSnapshot) -> Table:
    """Render a port health snapshot as a table."""
    table = Table(title="Port health")
    table.add_column("Service")
    table.add_column("Port", justify="right")
    table.add_column("Status")
    table.add_column("Owner")
    for service, health in sorted(snapshot.services.items(), key=lambda item: item[1].port):
        status = "[green]ready[/green]" if health.available else "[red]occupied[/red]"
        owner = "-"
        if health.owner is not None:
            owner = f"{health.owner.name or '?'} ({health.owner.pid})"
        table.add_row(service, str(health.port), status, owner)
    return table


async def collect_snapshot(cli: CLIContext) -> PortHealthSnapshot:
    settings = cli.config.ports
    manager = PortManager(
        platform=create_platform(),
        host=settings.host,
        well_known=settings.well_known,
    )
    return await manager.health_snapshot()


@app.default
def ports() -> None:
    """Show the status of the well-known service ports.

    Exits 1 when an essential service port (backend, frontend) is occupied.
    """
    snapshot = anyio.run(collect_snapshot, CLIContext.get_current())
    console = Console()
    console.print(snapshot_table(snapshot))
    if snapshot.healthy:
        console.print("[green]Essential ports are free[/green]")
        raise SystemExit(ExitCode.SUCCESS)
    console.print("[yellow]Essential ports are occupied[/yellow]")
    raise SystemExit(ExitCode.WITH_ERRORS)
