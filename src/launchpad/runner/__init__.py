"""Command runner for external processes.

Key Components:
    - CommandSpec: Structured command (executable + args)
    - RetryPolicy: Attempts, backoff and timeout
    - CommandResult: Captured result of a finished command
    - CommandRunner: One-shot, retried and background execution
    - ProcessHandle / ProcessEvent: Background process table entries and events
    - ProcessEventSink: Protocol for event consumers
    - CriticalCommandPolicy: Cleanup between attempts of critical commands

Example:
    >>> from launchpad.runner import CommandRunner, CommandSpec, RetryPolicy
    >>> async with CommandRunner(platform=platform) as runner:
    ...     result = await runner.run_with_retry(
    ...         CommandSpec.of("npm", "ci"), RetryPolicy(max_attempts=3)
    ...     )
"""

from ._backoff import ExponentialBackoff
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
from ._output import ConsoleEventSink, LogEventSink
from ._policies import DEFAULT_CRITICAL_POLICIES, CriticalCommandPolicy, find_policy
from ._protocol import ProcessEventSink
from ._runner import CommandRunner

__all__ = [
    "DEFAULT_CRITICAL_POLICIES",
    "CommandResult",
    "CommandRunner",
    "CommandSpec",
    "ConsoleEventSink",
    "CriticalCommandPolicy",
    "ExponentialBackoff",
    "HistoryEntry",
    "LogEventSink",
    "ProcessEvent",
    "ProcessEventKind",
    "ProcessEventSink",
    "ProcessHandle",
    "RetryPolicy",
    "RunnerStatistics",
    "find_policy",
]
