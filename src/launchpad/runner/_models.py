"""Data models for the command runner.

- RetryPolicy: attempts, backoff and timeout for one retried command
- CommandSpec: structured command built by the caller
- CommandResult: captured outcome of a finished command
- ProcessHandle: table entry for a background process
- ProcessEvent: typed record delivered to a ProcessEventSink
- HistoryEntry / RunnerStatistics: bounded command history and its summary
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations
from typing import TYPE_CHECKING, Self

import anyio

from ._backoff import ExponentialBackoff

if TYPE_CHECKING:
    from collections.abc import Mapping

    import anyio.abc

    from launchpad.platform import Platform
    from launchpad.recovery import ErrorRecord


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry policy for one command invocation.

    Attributes:
        max_attempts: Total attempts, including the first.
        initial_delay: Seconds to wait after the first failed attempt.
        backoff_multiplier: Factor applied to the delay after each attempt.
        timeout: Seconds each attempt may run before it is terminated.

    Raises:
        ValueError: If any value is out of range.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.initial_delay < 0:
            msg = f"initial_delay must be >= 0, got {self.initial_delay}"
            raise ValueError(msg)
        if self.backoff_multiplier < 1:
            msg = f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}"
            raise ValueError(msg)
        if self.timeout <= 0:
            msg = f"timeout must be > 0, got {self.timeout}"
            raise ValueError(msg)

    @property
    def backoff(self) -> ExponentialBackoff:
        """Return the backoff matching this policy."""
        return ExponentialBackoff(base=self.initial_delay, multiplier=self.backoff_multiplier)

    def delay(self, attempt: int) -> float:
        """Return the wait after failed attempt ``attempt`` (1-indexed)."""
        return self.backoff.delay(attempt - 1)

    def total_delay(self) -> float:
        """Return the summed wait of a command that fails every attempt."""
        return self.backoff.total(self.max_attempts - 1)


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """A command as ``executable + args``; never split from free text.

    Attributes:
        executable: Program to run.
        args: Arguments passed verbatim.
        cwd: Working directory, if different from the runner's.
        env: Variables added to the inherited environment.
    """

    executable: str
    args: tuple[str, ...] = ()
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict, hash=False)

    @classmethod
    def of(
        cls,
        *argv: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> Self:
        """Build a spec from an argv list: ``CommandSpec.of("npm", "ci")``."""
        if not argv:
            msg = "CommandSpec.of() requires at least the executable"
            raise ValueError(msg)
        return cls(executable=argv[0], args=tuple(argv[1:]), cwd=cwd, env=dict(env or {}))

    @classmethod
    def shell(
        cls,
        platform: Platform,
        script: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> Self:
        """Run ``script`` unparsed through the platform shell."""
        prefix = platform.shell()
        return cls(
            executable=prefix[0],
            args=(*prefix[1:], script),
            cwd=cwd,
            env=dict(env or {}),
        )

    @property
    def argv(self) -> tuple[str, ...]:
        """Return the full argument vector."""
        return (self.executable, *self.args)

    def render(self) -> str:
        """Return the command as a single shell-quoted line, for logs and matching."""
        return shlex.join(self.argv)

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a command that ran to completion.

    Attributes:
        command: Rendered command line.
        exit_code: Process exit status.
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration_ms: Wall-clock duration of the final attempt.
        attempts_used: Attempts made, including the successful one.
    """

    command: str
    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int
    attempts_used: int = 1

    @property
    def ok(self) -> bool:
        """Return True if the command exited with status 0."""
        return self.exit_code == 0


class ProcessEventKind(StrEnum):
    """Kinds of events emitted for background processes."""

    STARTED = "started"
    STDOUT = "stdout"
    STDERR = "stderr"
    TIMEOUT = "timeout"
    EXITED = "exited"


@dataclass(frozen=True, slots=True)
class ProcessEvent:
    """Immutable event for a background process.

    Attributes:
        process_id: Runner-assigned id of the process.
        kind: What happened.
        timestamp: ISO 8601 time of the event.
        pid: OS process id.
        payload: Output chunk or message.
        exit_code: Exit status for EXITED events.
        record: Error record for TIMEOUT events.
    """

    process_id: str
    kind: ProcessEventKind
    timestamp: str
    pid: int | None = None
    payload: str | None = None
    exit_code: int | None = None
    record: ErrorRecord | None = None


@dataclass(slots=True)
class ProcessHandle:
    """Table entry for a background process.

    Buffers are append-only; the handle is evicted from the runner's table a
    grace period after the process exits.

    Attributes:
        id: Runner-assigned unique id.
        command: Rendered command line.
        pid: OS process id once spawned.
        start_time: ISO 8601 spawn time.
        end_time: ISO 8601 exit time, None while running.
        output_buffer: Captured stdout chunks.
        error_buffer: Captured stderr chunks.
        exit_code: Exit status, None while running.
        timed_out: Whether the process was terminated by its timeout.
    """

    id: str
    command: str
    start_time: str
    pid: int | None = None
    end_time: str | None = None
    output_buffer: list[str] = field(default_factory=list)
    error_buffer: list[str] = field(default_factory=list)
    exit_code: int | None = None
    timed_out: bool = False
    _process: anyio.abc.Process | None = field(default=None, repr=False)
    _done: anyio.Event = field(default_factory=anyio.Event, repr=False)

    @property
    def running(self) -> bool:
        """Return True until the process has exited."""
        return not self._done.is_set()

    @property
    def output(self) -> str:
        """Return all captured stdout."""
        return "".join(self.output_buffer)

    @property
    def errors(self) -> str:
        """Return all captured stderr."""
        return "".join(self.error_buffer)

    async def wait(self) -> int | None:
        """Suspend until the process exits and return its exit status."""
        await self._done.wait()
        return self.exit_code


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """One command in the runner's bounded history."""

    command: str
    success: bool
    attempts: int
    timestamp: str


@dataclass(frozen=True, slots=True)
class RunnerStatistics:
    """Summary of the runner's command history.

    Attributes:
        total: Commands recorded.
        successful: Commands that eventually succeeded.
        failed: Commands that exhausted their attempts.
        with_retries: Successful commands that needed more than one attempt.
        average_attempts: Mean attempts per command, rounded to 2 places.
    """

    total: int
    successful: int
    failed: int
    with_retries: int
    average_attempts: float
