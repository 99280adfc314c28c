"""launchpad CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ._monitor import app as monitor_app
from ._ports import app as ports_app
from ._run import app as run_app

if TYPE_CHECKING:
    from cyclopts import App

__all__ = [
    "monitor_app",
    "ports_app",
    "register_commands",
    "run_app",
]


def register_commands(app: App) -> None:
    _ = app.command(run_app)
    _ = app.command(ports_app)
    _ = app.command(monitor_app)
