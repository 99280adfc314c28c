"""Windows platform."""

from __future__ import annotations

import platform as pyplatform
from typing import TYPE_CHECKING, final

from launchpad.utils import get_default_logger

from ._inspect import base_system_info, parse_netstat_pid, process_name, remove_tree, run_inspection
from ._models import ProcessRef, SystemInfo

if TYPE_CHECKING:
    from pathlib import Path

    from structlog.typing import FilteringBoundLogger

# taskkill exit status when the PID does not exist
_TASKKILL_NOT_FOUND = 128


@final
class WindowsPlatform:
    """Platform primitives backed by ``netstat`` and ``taskkill``."""

    __slots__ = ("_logger",)

    def __init__(self, logger: FilteringBoundLogger | None = None) -> None:
        self._logger: FilteringBoundLogger = logger or get_default_logger()

    @property
    def name(self) -> str:
        return "windows"

    async def _listening_pid(self, port: int) -> int | None:
        result = await run_inspection(("netstat", "-ano", "-p", "tcp"))
        if result is None or result.exit_code != 0:
            self._logger.debug("port_inspection_failed", port=port, tool="netstat")
            return None
        return parse_netstat_pid(result.stdout, port)

    async def is_port_bound(self, port: int) -> bool:
        return await self._listening_pid(port) is not None

    async def process_owning_port(self, port: int) -> ProcessRef | None:
        pid = await self._listening_pid(port)
        if pid is None:
            return None
        return ProcessRef(pid=pid, name=process_name(pid))

    async def kill_process(self, ref: ProcessRef, *, force: bool = False) -> bool:
        argv = ["taskkill", "/PID", str(ref.pid)]
        if force:
            argv.insert(1, "/F")
        result = await run_inspection(argv)
        if result is None:
            self._logger.warning("process_kill_failed", pid=ref.pid, force=force)
            return False
        if result.exit_code in {0, _TASKKILL_NOT_FOUND}:
            return True
        self._logger.warning(
            "process_kill_failed",
            pid=ref.pid,
            force=force,
            exit_code=result.exit_code,
            stderr=result.stderr.strip(),
        )
        return False

    def remove_directory(self, path: Path) -> None:
        remove_tree(path)

    async def system_info(self) -> SystemInfo:
        return base_system_info(os_version=pyplatform.version() or None)

    def shell(self) -> tuple[str, ...]:
        return ("powershell.exe", "-NoProfile", "-Command")
