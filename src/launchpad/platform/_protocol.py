"""Protocol for OS-specific primitives.

Callers receive a ``Platform`` from ``create_platform()`` and never branch on
the operating system themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path

    from ._models import ProcessRef, SystemInfo


@runtime_checkable
class Platform(Protocol):
    """OS primitives used by the port manager, runner and orchestrator.

    Inspection failures are fail-open (``False`` / ``None``); destructive
    operations are fail-closed (``False`` or an exception).
    """

    @property
    def name(self) -> str:
        """Return the platform variant name."""
        ...

    async def is_port_bound(self, port: int) -> bool:
        """Return True if some process listens on ``port``.

        Returns False when the OS inspection command fails.
        """
        ...

    async def process_owning_port(self, port: int) -> ProcessRef | None:
        """Return the process listening on ``port``, or None if unknown."""
        ...

    async def kill_process(self, ref: ProcessRef, *, force: bool = False) -> bool:
        """Terminate a process.

        Args:
            ref: Process to terminate.
            force: Kill immediately instead of asking it to exit.

        Returns:
            True if the process is gone or was signalled, False on error.
        """
        ...

    def remove_directory(self, path: Path) -> None:
        """Remove a directory tree; a missing path is a no-op.

        Raises:
            DirectoryRemovalError: If the tree cannot be removed.
        """
        ...

    async def system_info(self) -> SystemInfo:
        """Return host details."""
        ...

    def shell(self) -> tuple[str, ...]:
        """Return the argv prefix that runs a script in the platform shell."""
        ...
