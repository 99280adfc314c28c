"""Error classification and recovery.

The handler keeps one counter per ``(code, context)`` pair, a LIFO rollback
stack and the list of every record it has seen. ``handle()`` picks a strategy
from the record's severity and recurrence count and carries it out.
"""

from __future__ import annotations

import os
import sys
import time
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, Any, final

import anyio
import orjson
import psutil

from launchpad.enums import ErrorCategory, ErrorCode, RecoveryStrategy, Severity
from launchpad.exceptions import LaunchpadError
from launchpad.utils import get_default_logger, get_timestamp, maybe_await, write_json_atomic

from ._hooks import ProcessHooks
from ._models import (
    ErrorRecord,
    RecoveryOutcome,
    RecoverySummary,
    RollbackAction,
    RollbackResult,
    UndoCallable,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from structlog.typing import FilteringBoundLogger

    type Notifier = Callable[[ErrorRecord, Path | None], Awaitable[object] | object]
    type RestartCallback = Callable[[str | None], Awaitable[object] | object]
    type RetryCallable = Callable[[], Awaitable[object]]
    type SleepFn = Callable[[float], Awaitable[None]]

ESCALATION_THRESHOLD = 3


@final
class ErrorHandler:
    """Classifies failures and applies recovery strategies.

    Attributes:
        run_id: Identifier of the run, used in emergency dump names.
        dump_dir: Directory for emergency dumps.
        retry_delay: Base delay in seconds for the RETRY strategy.
    """

    __slots__ = (
        "_attempts",
        "_dump_count",
        "_error_log",
        "_escalations",
        "_hooks",
        "_logger",
        "_notifier",
        "_on_restart",
        "_rollback_stack",
        "_sleep",
        "dump_dir",
        "escalation_threshold",
        "retry_delay",
        "run_id",
    )

    def __init__(
        self,
        *,
        run_id: str,
        dump_dir: Path,
        retry_delay: float = 1.0,
        escalation_threshold: int = ESCALATION_THRESHOLD,
        notifier: Notifier | None = None,
        on_restart: RestartCallback | None = None,
        sleep: SleepFn | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            run_id: Identifier of the run.
            dump_dir: Directory emergency dumps are written to.
            retry_delay: Base delay for retries; the wait is
                ``retry_delay * occurrences``.
            escalation_threshold: Recurrence count above which a failure is
                escalated.
            notifier: Called with the record and dump path on escalation.
            on_restart: Called with the service name when RESTART is chosen.
            sleep: Awaitable sleep used between retries (defaults to anyio.sleep).
            logger: Logger for recovery events.
        """
        self.run_id = run_id
        self.dump_dir = dump_dir
        self.retry_delay = retry_delay
        self.escalation_threshold = escalation_threshold
        self._notifier = notifier
        self._on_restart = on_restart
        self._sleep: SleepFn = sleep or anyio.sleep
        self._logger: FilteringBoundLogger = logger or get_default_logger()
        self._attempts: Counter[tuple[ErrorCode, str]] = Counter()
        self._rollback_stack: list[RollbackAction] = []
        self._error_log: list[ErrorRecord] = []
        self._dump_count = 0
        self._escalations = 0
        self._hooks = ProcessHooks(self)

    # -------------------------------------------------------------------------
    # Rollback stack
    # -------------------------------------------------------------------------

    def register_rollback(self, description: str, undo: UndoCallable) -> RollbackAction:
        """Push an undo step onto the rollback stack.

        Args:
            description: What the step undoes.
            undo: Sync or async callable performing the undo.

        Returns:
            The registered action.
        """
        action = RollbackAction(description=description, undo=undo)
        self._rollback_stack.append(action)
        self._logger.debug("rollback_registered", description=description)
        return action

    @property
    def rollback_depth(self) -> int:
        """Return the number of pending rollback actions."""
        return len(self._rollback_stack)

    async def execute_rollback(self) -> list[RollbackResult]:
        """Run every pending undo step newest-first, then clear the stack.

        A failing step is recorded and does not stop the remaining steps.
        The stack is cleared even when steps fail.

        Returns:
            One result per action, in execution order.
        """
        actions = list(reversed(self._rollback_stack))
        self._rollback_stack.clear()

        results: list[RollbackResult] = []
        for action in actions:
            try:
                _ = await maybe_await(action.undo())
            except Exception as e:  # noqa: BLE001
                self._logger.warning(
                    "rollback_action_failed",
                    description=action.description,
                    error=str(e),
                )
                results.append(
                    RollbackResult(description=action.description, success=False, error=str(e))
                )
            else:
                self._logger.info("rollback_action_completed", description=action.description)
                results.append(RollbackResult(description=action.description, success=True))
        return results

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    @staticmethod
    def attempt_key(code: ErrorCode, context: Mapping[str, Any] | None) -> tuple[ErrorCode, str]:  # pyright: ignore[reportExplicitAny]
        """Return the counter key for a code and its context.

        The context is serialized with sorted keys so equal contexts map to
        the same key regardless of insertion order.
        """
        serialized = orjson.dumps(dict(context or {}), default=str, option=orjson.OPT_SORT_KEYS)
        return code, serialized.decode()

    def occurrences(self, code: ErrorCode, context: Mapping[str, Any] | None = None) -> int:  # pyright: ignore[reportExplicitAny]
        """Return how many times ``(code, context)`` has been handled."""
        return self._attempts[self.attempt_key(code, context)]

    def select_strategy(self, record: ErrorRecord, occurrences: int) -> RecoveryStrategy:
        """Choose a recovery strategy.

        Args:
            record: The failure being handled.
            occurrences: Times this ``(code, context)`` has occurred,
                including the current one.

        Returns:
            The strategy to apply.
        """
        if occurrences > self.escalation_threshold:
            return RecoveryStrategy.ESCALATE

        match record.severity:
            case Severity.CRITICAL:
                if self._rollback_stack:
                    return RecoveryStrategy.ROLLBACK
                return RecoveryStrategy.RESTART
            case Severity.HIGH:
                if record.code.category is ErrorCategory.PORT:
                    return RecoveryStrategy.RETRY
                return RecoveryStrategy.ROLLBACK
            case Severity.MEDIUM:
                return RecoveryStrategy.RETRY
            case Severity.LOW:
                return RecoveryStrategy.IGNORE

    # -------------------------------------------------------------------------
    # Handling
    # -------------------------------------------------------------------------

    async def handle(
        self,
        error: LaunchpadError | ErrorRecord,
        context: Mapping[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
        *,
        retry: RetryCallable | None = None,
        service_name: str | None = None,
    ) -> RecoveryOutcome:
        """Record a failure, select a strategy and carry it out.

        Args:
            error: The failure, as an exception or an existing record.
            context: Where the failure happened; part of the recurrence key.
            retry: Callable re-running the failed operation, used by RETRY.
            service_name: Service to restart, used by RESTART.

        Returns:
            The outcome of the selected strategy.
        """
        record = error.to_record() if isinstance(error, LaunchpadError) else error
        self._error_log.append(record)

        key = self.attempt_key(record.code, context)
        self._attempts[key] += 1
        occurrences = self._attempts[key]

        strategy = self.select_strategy(record, occurrences)
        self._logger.warning(
            "error_handled",
            code=str(record.code),
            severity=record.severity.value,
            message=record.message,
            strategy=strategy.value,
            occurrences=occurrences,
        )

        match strategy:
            case RecoveryStrategy.RETRY:
                return await self._retry(record, occurrences, retry)
            case RecoveryStrategy.ROLLBACK:
                return await self._rollback(record)
            case RecoveryStrategy.RESTART:
                return await self._restart(record, service_name)
            case RecoveryStrategy.IGNORE:
                return RecoveryOutcome(
                    record=record,
                    strategy=strategy,
                    success=True,
                    recovered=True,
                    action="error_ignored",
                )
            case RecoveryStrategy.ESCALATE:
                return await self._escalate(record, context)

    async def _retry(
        self,
        record: ErrorRecord,
        occurrences: int,
        retry: RetryCallable | None,
    ) -> RecoveryOutcome:
        if retry is None:
            return RecoveryOutcome(
                record=record,
                strategy=RecoveryStrategy.RETRY,
                success=False,
                action="no_retry_operation",
            )

        await self._sleep(self.retry_delay * occurrences)
        try:
            _ = await retry()
        except LaunchpadError as e:
            return RecoveryOutcome(
                record=record,
                strategy=RecoveryStrategy.RETRY,
                success=False,
                action="retry_failed",
                details={"error": e.message, "code": str(e.code)},
                retry_error=e,
            )
        return RecoveryOutcome(
            record=record,
            strategy=RecoveryStrategy.RETRY,
            success=True,
            recovered=True,
            action="retry_succeeded",
        )

    async def _rollback(self, record: ErrorRecord) -> RecoveryOutcome:
        results = await self.execute_rollback()
        return RecoveryOutcome(
            record=record,
            strategy=RecoveryStrategy.ROLLBACK,
            success=all(r.success for r in results),
            action="rollback_executed",
            details={"results": results},
        )

    async def _restart(self, record: ErrorRecord, service_name: str | None) -> RecoveryOutcome:
        if self._on_restart is None:
            return RecoveryOutcome(
                record=record,
                strategy=RecoveryStrategy.RESTART,
                success=False,
                action="restart_unavailable",
                details={"service": service_name},
            )
        try:
            _ = await maybe_await(self._on_restart(service_name))
        except Exception as e:  # noqa: BLE001
            self._logger.warning("restart_request_failed", service=service_name, error=str(e))
            return RecoveryOutcome(
                record=record,
                strategy=RecoveryStrategy.RESTART,
                success=False,
                action="restart_failed",
                details={"service": service_name, "error": str(e)},
            )
        return RecoveryOutcome(
            record=record,
            strategy=RecoveryStrategy.RESTART,
            success=True,
            action="restart_requested",
            details={"service": service_name},
        )

    async def _escalate(
        self,
        record: ErrorRecord,
        context: Mapping[str, Any] | None,  # pyright: ignore[reportExplicitAny]
    ) -> RecoveryOutcome:
        self._escalations += 1
        details: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
        dump_path: Path | None
        try:
            dump_path = self.emergency_dump(record, context)
        except LaunchpadError as e:
            dump_path = None
            details["dumpError"] = e.message
            self._logger.error("emergency_dump_failed", error=e.message)
        else:
            details["dump"] = str(dump_path)
        self._logger.error("error_escalated", code=str(record.code), dump=str(dump_path))

        if self._notifier is not None:
            try:
                _ = await maybe_await(self._notifier(record, dump_path))
            except Exception as e:  # noqa: BLE001
                self._logger.warning("notifier_failed", error=str(e))

        return RecoveryOutcome(
            record=record,
            strategy=RecoveryStrategy.ESCALATE,
            success=dump_path is not None,
            fatal=True,
            action="error_escalated",
            details=details,
        )

    def record_degraded(
        self,
        error: LaunchpadError,
        context: Mapping[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
    ) -> ErrorRecord:
        """Log a failure the run carries on past without recovering it.

        The record joins the error log and the summary but no strategy is
        applied and the recurrence counter is left alone.
        """
        record = error.to_record()
        self._error_log.append(record)
        self._logger.warning(
            "error_degraded",
            code=str(record.code),
            severity=record.severity.value,
            message=record.message,
            **dict(context or {}),
        )
        return record

    # -------------------------------------------------------------------------
    # Emergency dumps and process hooks
    # -------------------------------------------------------------------------

    def emergency_dump(
        self,
        record: ErrorRecord | None = None,
        context: Mapping[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
    ) -> Path:
        """Write the handler state and process details to a dump file.

        Args:
            record: The failure that triggered the dump.
            context: Context of that failure.

        Returns:
            Path of the written dump.
        """
        self._dump_count += 1
        path = self.dump_dir / f"emergency-{self.run_id}-{self._dump_count}.json"

        process = psutil.Process(os.getpid())
        memory = process.memory_info()
        write_json_atomic(
            path,
            {
                "runId": self.run_id,
                "timestamp": get_timestamp(),
                "error": record.model_dump(mode="json") if record else None,
                "context": dict(context or {}),
                "errorLog": [r.model_dump(mode="json") for r in self._error_log],
                "attempts": {f"{code}|{ctx}": n for (code, ctx), n in self._attempts.items()},
                "pendingRollbacks": [a.description for a in self._rollback_stack],
                "process": {
                    "pid": process.pid,
                    "python": sys.version.split()[0],
                    "platform": sys.platform,
                    "memoryRss": memory.rss,
                    "memoryVms": memory.vms,
                    "uptimeSeconds": round(time.time() - process.create_time(), 3),
                },
            },
        )
        return path

    def record_unhandled(self, exc: BaseException, *, source: str) -> ErrorRecord:
        """Turn an exception nobody caught into a record and an emergency dump.

        Args:
            exc: The uncaught exception.
            source: Which hook caught it.

        Returns:
            The synthetic System.InitFailed record.
        """
        record = ErrorRecord.create(
            ErrorCode.SYSTEM_INIT_FAILED,
            f"Unhandled exception: {exc}",
            details={"source": source, "exception_type": type(exc).__name__},
        )
        self._error_log.append(record)
        try:
            path = self.emergency_dump(record, {"source": source})
        except LaunchpadError as e:
            self._logger.error("emergency_dump_failed", error=e.message)
        else:
            self._logger.critical("unhandled_exception", source=source, dump=str(path))
        return record

    def install_hooks(self) -> None:
        """Route uncaught exceptions from threads, the interpreter and the event loop here."""
        self._hooks.install()

    @property
    def hooks_installed(self) -> bool:
        """Return whether the process-wide hooks point at this handler."""
        return self._hooks.installed

    def uninstall_hooks(self) -> None:
        """Restore the hooks that were in place before ``install_hooks()``."""
        self._hooks.uninstall()

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    @property
    def error_log(self) -> tuple[ErrorRecord, ...]:
        """Return every record handled so far, oldest first."""
        return tuple(self._error_log)

    def summary(self) -> RecoverySummary:
        """Summarize handled errors by severity and by code."""
        by_severity = Counter(r.severity for r in self._error_log)
        by_code = Counter(r.code for r in self._error_log)
        return RecoverySummary(
            total=len(self._error_log),
            by_severity={s: by_severity.get(s, 0) for s in Severity},
            by_code=dict(by_code),
            escalations=self._escalations,
        )
