"""Platform selection."""

from __future__ import annotations

import platform as pyplatform
from typing import TYPE_CHECKING

from ._macos import MacOSPlatform
from ._unix import UnixPlatform
from ._windows import WindowsPlatform

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._protocol import Platform


def create_platform(
    system: str | None = None,
    *,
    logger: FilteringBoundLogger | None = None,
) -> Platform:
    """Return the platform adapter for an operating system.

    Args:
        system: OS name as reported by ``platform.system()``; detected when None.
        logger: Logger passed to the adapter.

    Returns:
        ``WindowsPlatform`` for Windows, ``MacOSPlatform`` for Darwin and
        ``UnixPlatform`` for everything else.
    """
    match (system or pyplatform.system()).lower():
        case "windows":
            return WindowsPlatform(logger)
        case "darwin":
            return MacOSPlatform(UnixPlatform(logger))
        case _:
            return UnixPlatform(logger)
