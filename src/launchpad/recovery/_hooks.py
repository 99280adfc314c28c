"""Process-wide hooks for exceptions nobody caught.

Covers ``sys.excepthook``, ``threading.excepthook`` and, when installed from
inside a running asyncio loop, the loop's exception handler. Each hook records
the failure on the handler and then defers to whatever was installed before.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from typing import TYPE_CHECKING, Any, final

if TYPE_CHECKING:
    from types import TracebackType

    from ._handler import ErrorHandler


@final
class ProcessHooks:
    """Installs and restores the uncaught-exception hooks for one handler."""

    __slots__ = (
        "_handler",
        "_installed",
        "_loop",
        "_previous_loop_handler",
        "_previous_sys_hook",
        "_previous_thread_hook",
    )

    def __init__(self, handler: ErrorHandler) -> None:
        self._handler = handler
        self._installed = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_sys_hook = sys.excepthook
        self._previous_thread_hook = threading.excepthook
        self._previous_loop_handler: Any = None  # pyright: ignore[reportExplicitAny]

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        """Install the hooks; installing again only attaches a newly running loop."""
        if not self._installed:
            self._previous_sys_hook = sys.excepthook
            self._previous_thread_hook = threading.excepthook
            sys.excepthook = self._sys_hook
            threading.excepthook = self._thread_hook
            self._installed = True

        if self._loop is not None and not self._loop.is_closed():
            return
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        if self._loop is not None:
            self._previous_loop_handler = self._loop.get_exception_handler()
            self._loop.set_exception_handler(self._loop_hook)

    def uninstall(self) -> None:
        if not self._installed:
            return

        sys.excepthook = self._previous_sys_hook
        threading.excepthook = self._previous_thread_hook
        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(self._previous_loop_handler)
        self._loop = None
        self._previous_loop_handler = None
        self._installed = False

    def _sys_hook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if not issubclass(exc_type, KeyboardInterrupt):
            _ = self._handler.record_unhandled(exc, source="sys.excepthook")
        self._previous_sys_hook(exc_type, exc, tb)

    def _thread_hook(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_value is not None and not issubclass(args.exc_type, SystemExit):
            _ = self._handler.record_unhandled(args.exc_value, source="threading.excepthook")
        self._previous_thread_hook(args)

    def _loop_hook(
        self,
        loop: asyncio.AbstractEventLoop,
        context: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    ) -> None:
        exc = context.get("exception")
        if isinstance(exc, BaseException):
            _ = self._handler.record_unhandled(exc, source="asyncio")
        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)
