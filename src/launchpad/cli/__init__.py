"""The launchpad command-line interface."""

from ._app import create_app, main
from ._context import CLIContext
from ._shared import ExitCode, exit_code_for

__all__ = ["CLIContext", "ExitCode", "create_app", "exit_code_for", "main"]
