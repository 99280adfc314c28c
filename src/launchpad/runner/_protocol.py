"""Protocol for consumers of background process events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ._models import ProcessEvent


@runtime_checkable
class ProcessEventSink(Protocol):
    """Receives events for processes started with ``spawn_async``.

    Sinks are called from the runner's task group. Errors raised by a sink
    are logged and do not affect the process.
    """

    async def write_event(self, event: ProcessEvent) -> None:
        """Record one process event.

        Args:
            event: The event to record.
        """
        ...
