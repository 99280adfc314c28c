"""Common configuration types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from launchpad.runner import CommandSpec

if TYPE_CHECKING:
    from pathlib import Path

    from launchpad.platform import Platform

#: A command in configuration: an argv list, or a string run by the platform shell.
type CommandValue = list[str] | str


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class ConfigSourceName(StrEnum):
    """Configuration source names in precedence order.

    Values are ordered from highest precedence (CLI) to lowest (DEFAULT).
    """

    CLI = "cli"
    ENV = "env"
    PROJECT = "project"
    DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class ConfigSource:
    """Represents a configuration source.

    Attributes:
        name: The source type identifier.
        path: Path to the config file, or None for non-file sources.
        exists: Whether the source exists (file exists, or values are present).
        values: Configuration values from this source.
    """

    name: ConfigSourceName
    path: Path | None
    exists: bool
    values: dict[str, Any]  # pyright: ignore[reportExplicitAny]


def build_command(
    value: CommandValue,
    platform: Platform,
    *,
    cwd: Path | None = None,
) -> CommandSpec:
    """Turn a configured command into a ``CommandSpec``.

    Lists are used as argv; strings are handed to the platform shell unparsed.
    """
    if isinstance(value, str):
        return CommandSpec.shell(platform, value, cwd=cwd)
    return CommandSpec.of(*value, cwd=cwd)
