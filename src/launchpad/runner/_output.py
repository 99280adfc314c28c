"""ProcessEventSink implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING, final

from rich.console import Console
from rich.style import Style
from rich.text import Text

from launchpad.utils import get_default_logger

from ._models import ProcessEventKind

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._models import ProcessEvent


@final
class ConsoleEventSink:
    """Writes process output and events to a rich console.

    Output lines are printed as ``[id:pid] line``; stderr is dim red and
    lifecycle events are highlighted by kind.
    """

    __slots__ = ("_console", "_event_styles", "_stderr_style", "_stdout_style")

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the sink.

        Args:
            console: Rich Console instance for output. If None, creates a new one.
        """
        self._console = console or Console()
        self._stdout_style = Style()
        self._stderr_style = Style(color="red", dim=True)
        self._event_styles: dict[ProcessEventKind, Style] = {
            ProcessEventKind.STARTED: Style(color="green", bold=True),
            ProcessEventKind.EXITED: Style(color="yellow"),
            ProcessEventKind.TIMEOUT: Style(color="red", bold=True),
        }

    async def write_event(self, event: ProcessEvent) -> None:
        prefix = f"[{event.process_id}:{event.pid}]" if event.pid else f"[{event.process_id}]"

        text = Text()
        _ = text.append(prefix, style=Style(color="blue", bold=True))
        _ = text.append(" ")

        if event.kind in {ProcessEventKind.STDOUT, ProcessEventKind.STDERR}:
            is_stderr = event.kind is ProcessEventKind.STDERR
            style = self._stderr_style if is_stderr else self._stdout_style
            _ = text.append((event.payload or "").rstrip("\r\n"), style=style)
        else:
            style = self._event_styles.get(event.kind, Style())
            _ = text.append(event.kind.value.upper(), style=style)
            if event.exit_code is not None:
                _ = text.append(f" exit_code={event.exit_code}", style=Style(dim=True))
            if event.payload:
                _ = text.append(f" - {event.payload}", style=style)

        self._console.print(text)


@final
class LogEventSink:
    """Writes process events to a structlog logger.

    Output chunks are logged at debug level, lifecycle events at info and
    timeouts at warning.
    """

    __slots__ = ("_logger",)

    def __init__(self, logger: FilteringBoundLogger | None = None) -> None:
        self._logger: FilteringBoundLogger = logger or get_default_logger()

    async def write_event(self, event: ProcessEvent) -> None:
        match event.kind:
            case ProcessEventKind.STDOUT | ProcessEventKind.STDERR:
                self._logger.debug(
                    "process_output",
                    process_id=event.process_id,
                    stream=event.kind.value,
                    chunk=event.payload,
                )
            case ProcessEventKind.TIMEOUT:
                self._logger.warning(
                    "process_timeout",
                    process_id=event.process_id,
                    pid=event.pid,
                    code=str(event.record.code) if event.record else None,
                )
            case _:
                self._logger.info(
                    f"process_{event.kind.value}",
                    process_id=event.process_id,
                    pid=event.pid,
                    exit_code=event.exit_code,
                    message=event.payload,
                )
