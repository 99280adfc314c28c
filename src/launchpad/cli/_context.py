# ruff: noqa: TC003  # Path needed at runtime for dataclass field
"""CLI context for global state management.

The CLIContext is set once at CLI startup and made available to all
commands via contextvars.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass, field
from pathlib import Path

from launchpad.config import LaunchpadConfig

_current_cli_context: contextvars.ContextVar[CLIContext | None] = contextvars.ContextVar(
    "cli_context", default=None
)


@dataclass(frozen=True, slots=True)
class CLIContext:
    """Global CLI context with configuration and options.

    Attributes:
        config: Loaded configuration object.
        verbose: Stream command output and log at debug level.
        project_root: Project root given on the command line.
        config_path: Config file given on the command line.
        config_error: Error message if config loading failed.
    """

    config: LaunchpadConfig = field(repr=False)
    verbose: bool = False
    project_root: Path | None = None
    config_path: Path | None = None
    config_error: str | None = None

    @property
    def root(self) -> Path:
        """Return the resolved project root."""
        return (self.project_root or Path.cwd()).resolve()

    @classmethod
    def get_current(cls) -> CLIContext:
        """Get current active CLIContext, or create a default if not set."""
        ctx = _current_cli_context.get()
        if ctx is not None:
            return ctx
        return cls(config=LaunchpadConfig.from_dict({}))

    @classmethod
    def set_current(cls, ctx: CLIContext) -> None:
        _ = _current_cli_context.set(ctx)

    @classmethod
    def reset(cls) -> None:
        """Reset to default context.

        This is primarily useful for testing to ensure a clean state between tests.
        """
        _ = _current_cli_context.set(None)
