"""Linux and generic POSIX platform."""

from __future__ import annotations

import os
import platform as pyplatform
import signal
from typing import TYPE_CHECKING, final

from launchpad.utils import get_default_logger

from ._inspect import (
    base_system_info,
    parse_lsof_pids,
    process_name,
    remove_tree,
    run_inspection,
)
from ._models import ProcessRef, SystemInfo

if TYPE_CHECKING:
    from pathlib import Path

    from structlog.typing import FilteringBoundLogger


@final
class UnixPlatform:
    """Platform primitives backed by ``lsof`` and POSIX signals."""

    __slots__ = ("_logger",)

    def __init__(self, logger: FilteringBoundLogger | None = None) -> None:
        self._logger: FilteringBoundLogger = logger or get_default_logger()

    @property
    def name(self) -> str:
        return "unix"

    async def _listening_pids(self, port: int) -> list[int] | None:
        result = await run_inspection(("lsof", "-i", f":{port}", "-sTCP:LISTEN", "-t"))
        if result is None:
            self._logger.debug("port_inspection_failed", port=port, tool="lsof")
            return None
        # lsof exits 1 when nothing matches
        if result.exit_code != 0:
            return []
        return parse_lsof_pids(result.stdout)

    async def is_port_bound(self, port: int) -> bool:
        return bool(await self._listening_pids(port))

    async def process_owning_port(self, port: int) -> ProcessRef | None:
        pids = await self._listening_pids(port)
        if not pids:
            return None
        return ProcessRef(pid=pids[0], name=process_name(pids[0]))

    async def kill_process(self, ref: ProcessRef, *, force: bool = False) -> bool:
        sig = signal.SIGKILL if force else signal.SIGTERM
        try:
            os.kill(ref.pid, sig)
        except ProcessLookupError:
            return True
        except OSError as e:
            self._logger.warning("process_kill_failed", pid=ref.pid, force=force, error=str(e))
            return False
        self._logger.info("process_signalled", pid=ref.pid, signal=sig.name)
        return True

    def remove_directory(self, path: Path) -> None:
        remove_tree(path)

    async def system_info(self) -> SystemInfo:
        return base_system_info(os_version=pyplatform.release() or None)

    def shell(self) -> tuple[str, ...]:
        return ("/bin/sh", "-c")
