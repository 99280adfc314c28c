"""Command runner: one-shot, retried and background commands.

The runner is an async context manager. Background processes started with
``spawn_async`` run in its task group and are terminated when the runner
exits.
"""

from __future__ import annotations

import os
import signal
import subprocess
import time
import uuid
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, Self, final

import anyio
import anyio.abc
from anyio.streams.text import TextReceiveStream

from launchpad.exceptions import (
    CommandError,
    CommandFailedError,
    CommandNotFoundError,
    CommandPermissionError,
    CommandSpawnError,
    CommandTimeoutError,
    DirectoryRemovalError,
    ProcessNotFoundError,
    RetriesExhaustedError,
)
from launchpad.utils import get_default_logger, get_timestamp, maybe_await

from ._models import (
    CommandResult,
    CommandSpec,
    HistoryEntry,
    ProcessEvent,
    ProcessEventKind,
    ProcessHandle,
    RetryPolicy,
    RunnerStatistics,
)
from ._policies import DEFAULT_CRITICAL_POLICIES, CriticalCommandPolicy, find_policy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping
    from types import TracebackType

    from structlog.typing import FilteringBoundLogger

    from launchpad.platform import Platform

    from ._protocol import ProcessEventSink

    type OutputCallback = Callable[[str], Awaitable[object] | object]
    type ExitCallback = Callable[[int | None], Awaitable[object] | object]
    type SleepFn = Callable[[float], Awaitable[None]]

DEFAULT_TIMEOUT = 30.0
DEFAULT_KILL_GRACE = 5.0
DEFAULT_GRACE_PERIOD = 60.0
HISTORY_SIZE = 100


@final
class CommandRunner:
    """Runs external commands with timeouts, retries and a process table.

    Attributes:
        cwd: Default working directory for commands.
        default_timeout: Timeout used when a call does not pass one.
        kill_grace: Seconds between SIGTERM and SIGKILL on timeout.
        grace_period: Seconds an exited background process stays queryable.
    """

    __slots__ = (
        "_history",
        "_logger",
        "_platform",
        "_policies",
        "_processes",
        "_sink",
        "_sleep",
        "_task_group",
        "cwd",
        "default_timeout",
        "grace_period",
        "kill_grace",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        platform: Platform,
        cwd: Path | None = None,
        critical_policies: Iterable[CriticalCommandPolicy] = DEFAULT_CRITICAL_POLICIES,
        default_timeout: float = DEFAULT_TIMEOUT,
        kill_grace: float = DEFAULT_KILL_GRACE,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        sink: ProcessEventSink | None = None,
        sleep: SleepFn | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            platform: Platform adapter, used to remove partial output paths.
            cwd: Default working directory (the current directory if None).
            critical_policies: Cleanup policies for critical commands.
            default_timeout: Timeout for calls that do not pass one.
            kill_grace: Seconds to wait after SIGTERM before SIGKILL.
            grace_period: Seconds exited background processes stay in the table.
            sink: Receiver of background process events.
            sleep: Awaitable sleep used between retries (defaults to anyio.sleep).
            logger: Logger for command events.
        """
        self.cwd = cwd or Path.cwd()
        self.default_timeout = default_timeout
        self.kill_grace = kill_grace
        self.grace_period = grace_period
        self._platform = platform
        self._policies = tuple(critical_policies)
        self._sink = sink
        self._sleep: SleepFn = sleep or anyio.sleep
        self._logger: FilteringBoundLogger = logger or get_default_logger()
        self._processes: dict[str, ProcessHandle] = {}
        self._history: deque[HistoryEntry] = deque(maxlen=HISTORY_SIZE)
        self._task_group: anyio.abc.TaskGroup | None = None

    async def __aenter__(self) -> Self:
        self._task_group = anyio.create_task_group()
        _ = await self._task_group.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        task_group = self._task_group
        if task_group is None:
            return None
        self._task_group = None
        # Supervisors terminate their own processes when cancelled
        task_group.cancel_scope.cancel()
        return await task_group.__aexit__(exc_type, exc, tb)

    # -------------------------------------------------------------------------
    # Synchronous (awaited) execution
    # -------------------------------------------------------------------------

    def _resolve_env(
        self,
        cmd: CommandSpec,
        env: Mapping[str, str] | None,
    ) -> dict[str, str] | None:
        if not cmd.env and not env:
            return None
        return {**os.environ, **cmd.env, **(env or {})}

    async def _open(
        self,
        cmd: CommandSpec,
        *,
        cwd: Path | None,
        env: Mapping[str, str] | None,
    ) -> anyio.abc.Process:
        rendered = cmd.render()
        try:
            return await anyio.open_process(
                list(cmd.argv),
                cwd=cwd or cmd.cwd or self.cwd,
                env=self._resolve_env(cmd, env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as e:
            msg = f"Command not found: {cmd.executable}"
            raise CommandNotFoundError(msg, command=rendered) from e
        except PermissionError as e:
            msg = f"Permission denied running {cmd.executable}"
            raise CommandPermissionError(msg, command=rendered) from e
        except OSError as e:
            msg = f"Failed to start {cmd.executable}: {e}"
            raise CommandSpawnError(msg, command=rendered) from e

    async def _terminate_process(self, process: anyio.abc.Process) -> None:
        """Send SIGTERM, then SIGKILL if the process outlives the kill grace."""
        with anyio.CancelScope(shield=True):
            try:
                process.terminate()
            except ProcessLookupError:
                return
            with anyio.move_on_after(self.kill_grace):
                _ = await process.wait()
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    return
                _ = await process.wait()

    @staticmethod
    async def _drain(stream: anyio.abc.ByteReceiveStream, chunks: list[str]) -> None:
        try:
            async for chunk in TextReceiveStream(stream, errors="replace"):
                chunks.append(chunk)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Stream closed, which is expected on process exit
            pass

    async def _run(
        self,
        cmd: CommandSpec,
        *,
        cwd: Path | None,
        env: Mapping[str, str] | None,
        timeout: float | None,
        attempt: int = 1,
    ) -> CommandResult:
        rendered = cmd.render()
        effective_timeout = timeout if timeout is not None else self.default_timeout
        stdout: list[str] = []
        stderr: list[str] = []
        timed_out = False

        self._logger.debug("command_started", command=rendered, attempt=attempt)
        started = time.monotonic()
        process = await self._open(cmd, cwd=cwd, env=env)
        try:
            async with anyio.create_task_group() as tg:
                if process.stdout is not None:
                    tg.start_soon(self._drain, process.stdout, stdout)
                if process.stderr is not None:
                    tg.start_soon(self._drain, process.stderr, stderr)

                with anyio.move_on_after(effective_timeout) as scope:
                    _ = await process.wait()

                if scope.cancelled_caught:
                    timed_out = True
                    await self._terminate_process(process)
                    # Grandchildren may hold the pipes open; keep what was read
                    tg.cancel_scope.cancel()
        finally:
            if process.returncode is None:
                await self._terminate_process(process)
            await process.aclose()

        duration_ms = int((time.monotonic() - started) * 1000)

        if timed_out:
            msg = f"Command timed out after {effective_timeout:g}s: {rendered}"
            raise CommandTimeoutError(msg, command=rendered, timeout=effective_timeout)

        result = CommandResult(
            command=rendered,
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout="".join(stdout),
            stderr="".join(stderr),
            duration_ms=duration_ms,
            attempts_used=attempt,
        )
        if not result.ok:
            msg = f"Command exited with status {result.exit_code}: {rendered}"
            raise CommandFailedError(msg, command=rendered, result=result)

        self._logger.debug("command_completed", command=rendered, duration_ms=duration_ms)
        return result

    async def run_once(
        self,
        cmd: CommandSpec,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command and wait for it to exit.

        Args:
            cmd: Command to run.
            cwd: Working directory (overrides ``cmd.cwd`` and the runner default).
            env: Variables added to the inherited environment.
            timeout: Seconds before the command is terminated.

        Returns:
            The captured result of a zero exit.

        Raises:
            CommandTimeoutError: The timeout elapsed; the process was terminated.
            CommandFailedError: The command exited non-zero.
            CommandNotFoundError: The executable does not exist.
            CommandPermissionError: The executable may not be run.
            CommandSpawnError: The process could not be started.
        """
        try:
            result = await self._run(cmd, cwd=cwd, env=env, timeout=timeout)
        except CommandError:
            self._record(cmd.render(), success=False, attempts=1)
            raise
        self._record(result.command, success=True, attempts=1)
        return result

    async def run_with_retry(
        self,
        cmd: CommandSpec,
        policy: RetryPolicy,
        *,
        critical: bool | None = None,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a command until it succeeds or the policy's attempts run out.

        Sleeps ``policy.delay(attempt)`` after every failed attempt except the
        last. Critical commands get their policy's cleanup before each retry.

        Args:
            cmd: Command to run.
            policy: Attempts, backoff and per-attempt timeout.
            critical: Force critical handling on or off; None classifies the
                command with the policy table.
            cwd: Working directory.
            env: Variables added to the inherited environment.

        Returns:
            The result of the successful attempt.

        Raises:
            RetriesExhaustedError: Every attempt failed.
        """
        rendered = cmd.render()
        cleanup = find_policy(self._policies, rendered) if critical is not False else None
        history: list[dict[str, Any]] = []  # pyright: ignore[reportExplicitAny]
        last_error: CommandError | None = None

        for attempt in range(1, policy.max_attempts + 1):
            self._logger.info(
                "command_attempt",
                command=rendered,
                attempt=attempt,
                max_attempts=policy.max_attempts,
            )
            try:
                result = await self._run(
                    cmd, cwd=cwd, env=env, timeout=policy.timeout, attempt=attempt
                )
            except CommandError as e:
                last_error = e
                history.append(
                    {
                        "attempt": attempt,
                        "code": str(e.code),
                        "message": e.message,
                        "timestamp": get_timestamp(),
                    }
                )
                self._logger.warning(
                    "command_attempt_failed",
                    command=rendered,
                    attempt=attempt,
                    code=str(e.code),
                    error=e.message,
                )
                if attempt < policy.max_attempts:
                    delay = policy.delay(attempt)
                    self._logger.info("command_retry_scheduled", command=rendered, delay=delay)
                    await self._sleep(delay)
                    if cleanup is not None:
                        await self._cleanup_before_retry(cleanup, cmd, cwd, e)
            else:
                self._record(rendered, success=True, attempts=attempt)
                return result

        self._record(rendered, success=False, attempts=policy.max_attempts)
        assert last_error is not None  # noqa: S101
        msg = f"Command failed after {policy.max_attempts} attempts: {rendered}"
        raise RetriesExhaustedError(
            msg,
            command=rendered,
            attempts=policy.max_attempts,
            history=history,
            last_error=last_error,
        )

    async def _cleanup_before_retry(
        self,
        policy: CriticalCommandPolicy,
        cmd: CommandSpec,
        cwd: Path | None,
        error: CommandError,
    ) -> None:
        base = cwd or cmd.cwd or self.cwd
        for cleanup_cmd in policy.cleanup_commands:
            try:
                _ = await self._run(cleanup_cmd, cwd=base, env=None, timeout=self.default_timeout)
            except CommandError as e:
                self._logger.warning(
                    "cleanup_command_failed", command=cleanup_cmd.render(), error=e.message
                )
            else:
                self._logger.info("cleanup_command_completed", command=cleanup_cmd.render())

        failure_output = f"{error.message}\n{error.details.get('stderr', '')}"
        if policy.should_remove_paths(failure_output):
            for rel in policy.remove_paths:
                path = rel if rel.is_absolute() else base / rel
                try:
                    self._platform.remove_directory(path)
                except DirectoryRemovalError as e:
                    self._logger.warning("cleanup_path_failed", path=str(path), error=e.message)
                else:
                    self._logger.info("cleanup_path_removed", path=str(path))

    # -------------------------------------------------------------------------
    # Background processes
    # -------------------------------------------------------------------------

    async def spawn_async(  # noqa: PLR0913
        self,
        cmd: CommandSpec,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        on_output: OutputCallback | None = None,
        on_error: OutputCallback | None = None,
        on_exit: ExitCallback | None = None,
    ) -> ProcessHandle:
        """Start a command in the background and return its handle at once.

        Output is streamed into the handle's buffers and the callbacks. When
        ``timeout`` elapses the process is terminated and a TIMEOUT event
        carrying a Process.Timeout record is emitted.

        Args:
            cmd: Command to run.
            cwd: Working directory.
            env: Variables added to the inherited environment.
            timeout: Seconds before the process is terminated; None for no limit.
            on_output: Called with each stdout chunk.
            on_error: Called with each stderr chunk.
            on_exit: Called with the exit status.

        Returns:
            The process handle, registered in the process table.

        Raises:
            RuntimeError: If the runner has not been entered.
            CommandNotFoundError: The executable does not exist.
            CommandPermissionError: The executable may not be run.
            CommandSpawnError: The process could not be started.
        """
        if self._task_group is None:
            msg = "CommandRunner must be entered with 'async with' before spawning"
            raise RuntimeError(msg)

        process = await self._open(cmd, cwd=cwd, env=env)
        handle = ProcessHandle(
            id=f"proc-{uuid.uuid4().hex[:12]}",
            command=cmd.render(),
            start_time=get_timestamp(),
            pid=process.pid,
            _process=process,
        )
        self._processes[handle.id] = handle
        self._logger.info(
            "process_spawned", process_id=handle.id, pid=handle.pid, command=handle.command
        )
        await self._emit(handle, ProcessEventKind.STARTED, payload=handle.command)

        self._task_group.start_soon(
            self._supervise, handle, process, timeout, on_output, on_error, on_exit
        )
        return handle

    async def _emit(
        self,
        handle: ProcessHandle,
        kind: ProcessEventKind,
        **fields: Any,  # pyright: ignore[reportExplicitAny, reportAny]
    ) -> None:
        if self._sink is None:
            return
        event = ProcessEvent(
            process_id=handle.id,
            kind=kind,
            timestamp=get_timestamp(),
            pid=handle.pid,
            **fields,  # pyright: ignore[reportAny]
        )
        try:
            await self._sink.write_event(event)
        except Exception as e:  # noqa: BLE001
            self._logger.debug("event_sink_failed", process_id=handle.id, error=str(e))

    async def _notify(self, callback: Callable[..., object] | None, *args: object) -> None:
        if callback is None:
            return
        try:
            _ = await maybe_await(callback(*args))
        except Exception as e:  # noqa: BLE001
            self._logger.warning("process_callback_failed", error=str(e))

    async def _stream(
        self,
        handle: ProcessHandle,
        stream: anyio.abc.ByteReceiveStream | None,
        stream_name: Literal["stdout", "stderr"],
        callback: OutputCallback | None,
    ) -> None:
        if stream is None:
            return
        buffer = handle.output_buffer if stream_name == "stdout" else handle.error_buffer
        kind = ProcessEventKind.STDOUT if stream_name == "stdout" else ProcessEventKind.STDERR
        try:
            async for chunk in TextReceiveStream(stream, errors="replace"):
                buffer.append(chunk)
                await self._notify(callback, chunk)
                await self._emit(handle, kind, payload=chunk)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            pass

    async def _supervise(  # noqa: PLR0913
        self,
        handle: ProcessHandle,
        process: anyio.abc.Process,
        timeout: float | None,
        on_output: OutputCallback | None,
        on_error: OutputCallback | None,
        on_exit: ExitCallback | None,
    ) -> None:
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._stream, handle, process.stdout, "stdout", on_output)
                tg.start_soon(self._stream, handle, process.stderr, "stderr", on_error)

                with anyio.move_on_after(timeout) as scope:
                    _ = await process.wait()

                if scope.cancelled_caught:
                    handle.timed_out = True
                    msg = f"Process {handle.id} timed out after {timeout:g}s"
                    error = CommandTimeoutError(
                        msg, command=handle.command, timeout=timeout or 0.0
                    )
                    self._logger.warning("process_timeout", process_id=handle.id, timeout=timeout)
                    await self._emit(
                        handle, ProcessEventKind.TIMEOUT, payload=msg, record=error.to_record()
                    )
                    await self._terminate_process(process)
                    tg.cancel_scope.cancel()
        finally:
            if process.returncode is None:
                await self._terminate_process(process)
            with anyio.CancelScope(shield=True):
                await process.aclose()
            handle.exit_code = process.returncode
            handle.end_time = get_timestamp()
            handle._done.set()  # noqa: SLF001

        self._logger.info("process_exited", process_id=handle.id, exit_code=handle.exit_code)
        await self._notify(on_exit, handle.exit_code)
        await self._emit(handle, ProcessEventKind.EXITED, exit_code=handle.exit_code)

        await anyio.sleep(self.grace_period)
        _ = self._processes.pop(handle.id, None)

    # -------------------------------------------------------------------------
    # Process table
    # -------------------------------------------------------------------------

    def get(self, process_id: str) -> ProcessHandle:
        """Return a handle from the process table.

        Raises:
            ProcessNotFoundError: If the id is unknown or already evicted.
        """
        try:
            return self._processes[process_id]
        except KeyError:
            msg = f"Process {process_id} not found"
            raise ProcessNotFoundError(msg, process_id=process_id) from None

    def list_running(self) -> list[ProcessHandle]:
        """Return handles of processes that have not exited."""
        return [h for h in self._processes.values() if h.running]

    def list_all(self) -> list[ProcessHandle]:
        """Return every handle still in the table, including exited ones."""
        return list(self._processes.values())

    def terminate(self, process_id: str, sig: signal.Signals = signal.SIGTERM) -> bool:
        """Send a signal to a background process.

        Returns:
            True if the signal was delivered, False if the process already exited.

        Raises:
            ProcessNotFoundError: If the id is unknown.
        """
        handle = self.get(process_id)
        process = handle._process  # noqa: SLF001
        if process is None or not handle.running:
            return False
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            return False
        self._logger.info("process_signalled", process_id=process_id, signal=sig.name)
        return True

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def _record(self, command: str, *, success: bool, attempts: int) -> None:
        self._history.append(
            HistoryEntry(
                command=command,
                success=success,
                attempts=attempts,
                timestamp=get_timestamp(),
            )
        )

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        """Return the most recent commands, oldest first."""
        return tuple(self._history)

    def statistics(self) -> RunnerStatistics:
        """Summarize the command history."""
        entries = list(self._history)
        successful = sum(1 for e in entries if e.success)
        total_attempts = sum(e.attempts for e in entries)
        return RunnerStatistics(
            total=len(entries),
            successful=successful,
            failed=len(entries) - successful,
            with_retries=sum(1 for e in entries if e.success and e.attempts > 1),
            average_attempts=round(total_attempts / len(entries), 2) if entries else 0.0,
        )
