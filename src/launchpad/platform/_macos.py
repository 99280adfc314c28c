"""macOS platform: POSIX primitives plus ``sw_vers`` version lookup."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, final

from ._inspect import run_inspection
from ._unix import UnixPlatform

if TYPE_CHECKING:
    from pathlib import Path

    from structlog.typing import FilteringBoundLogger

    from ._models import ProcessRef, SystemInfo


@final
class MacOSPlatform:
    """Delegates process and port handling to a ``UnixPlatform``."""

    __slots__ = ("_unix",)

    def __init__(
        self,
        unix: UnixPlatform | None = None,
        *,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self._unix = unix or UnixPlatform(logger)

    @property
    def name(self) -> str:
        return "macos"

    async def is_port_bound(self, port: int) -> bool:
        return await self._unix.is_port_bound(port)

    async def process_owning_port(self, port: int) -> ProcessRef | None:
        return await self._unix.process_owning_port(port)

    async def kill_process(self, ref: ProcessRef, *, force: bool = False) -> bool:
        return await self._unix.kill_process(ref, force=force)

    def remove_directory(self, path: Path) -> None:
        self._unix.remove_directory(path)

    async def product_version(self) -> str | None:
        """Return the macOS product version reported by ``sw_vers``."""
        result = await run_inspection(("sw_vers", "-productVersion"))
        if result is None or result.exit_code != 0:
            return None
        return result.stdout.strip() or None

    async def system_info(self) -> SystemInfo:
        info = await self._unix.system_info()
        version = await self.product_version()
        if version is None:
            return info
        return replace(info, os_version=version)

    def shell(self) -> tuple[str, ...]:
        return self._unix.shell()
