"""Logging utilities for launchpad.

This module provides standalone structlog logger factories that write
text-formatted or JSON-formatted logs to run log files. Each logger is
self-contained and does not modify global structlog configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TextIO, cast

import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]


def _get_log_level() -> int:
    """Get the log level from environment variables.

    Checks LAUNCHPAD_DEBUG first (sets DEBUG if present), then
    LAUNCHPAD_LOG_LEVEL. Defaults to INFO if neither is set.

    Returns:
        The logging level as an integer.
    """
    if getenv("LAUNCHPAD_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(getenv("LAUNCHPAD_LOG_LEVEL", "info").upper(), logging.INFO)


def _log_level_from_string(level: str, *, respect_env: bool = False) -> int:
    """Convert a log level string to a logging level integer.

    Args:
        level: Log level string (debug, info, warning, error).
        respect_env: If True, LAUNCHPAD_DEBUG overrides to DEBUG level.

    Returns:
        The logging level as an integer.
    """
    if respect_env and getenv("LAUNCHPAD_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)


def _build_processors(log_format: LogFormatType) -> list[structlog.typing.Processor]:
    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        # Add dict_tracebacks for structured exception logging in JSON
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Text format: "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def _create_logger(
    stream: TextIO,
    *,
    log_level: int | None = None,
    log_format: LogFormatType = "text",
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger writing to an open text stream.

    Args:
        stream: Stream the rendered lines are written to.
        log_level: Override log level (uses env vars if not specified).
        log_format: Output format, either "json" or "text".

    Returns:
        A configured FilteringBoundLogger instance.
    """
    effective_level = log_level if log_level is not None else _get_log_level()
    wrapper_class = structlog.make_filtering_bound_logger(effective_level)

    # Use wrap_logger for standalone logger creation (doesn't affect global config)
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            structlog.WriteLoggerFactory(file=stream)(),
            processors=_build_processors(log_format),
            wrapper_class=wrapper_class,
            context_class=dict,
        ),
    )


@dataclass(slots=True)
class RunLog:
    """A run-scoped log sink.

    Attributes:
        path: Location of the log file.
        logger: Bound logger writing to the file.
    """

    path: Path
    logger: FilteringBoundLogger = field(repr=False)
    _stream: TextIO = field(repr=False)

    @property
    def closed(self) -> bool:
        """Return True once the underlying file has been closed."""
        return self._stream.closed

    def close(self) -> None:
        """Flush and close the log file. Safe to call more than once."""
        if not self._stream.closed:
            self._stream.flush()
            self._stream.close()


def create_run_logger(
    log_dir: Path,
    run_id: str,
    *,
    level: str = "info",
    log_format: LogFormatType = "text",
) -> RunLog:
    """Create the logger for one orchestration run.

    Writes line-delimited, timestamped entries to
    ``<log_dir>/launchpad-<run_id>.log``. The run id is bound to every entry.

    The log level can be overridden by environment variables:
    - LAUNCHPAD_DEBUG: If set, enables DEBUG level logging regardless of config

    Args:
        log_dir: Directory for run logs (created if missing).
        run_id: Identifier of the run.
        level: Log level threshold (debug, info, warning, error).
        log_format: Output format, either "json" or "text".

    Returns:
        A RunLog owning the open log file.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"launchpad-{run_id}.log"
    stream = log_path.open("a", encoding="utf-8")

    logger = _create_logger(
        stream,
        log_level=_log_level_from_string(level, respect_env=True),
        log_format=log_format,
    )
    return RunLog(path=log_path, logger=logger.bind(run_id=run_id), _stream=stream)


def get_default_logger() -> "FilteringBoundLogger":  # noqa: UP037
    """Return the process-wide structlog logger used when none is injected."""
    return cast("FilteringBoundLogger", structlog.get_logger("launchpad"))
