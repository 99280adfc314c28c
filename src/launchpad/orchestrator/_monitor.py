"""Periodic self-checks after a successful run."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, final

import anyio
import psutil

from launchpad.exceptions import ProcessNotFoundError
from launchpad.utils import get_default_logger, get_timestamp, maybe_await

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from structlog.typing import FilteringBoundLogger

    from launchpad.ports import PortHealthSnapshot, PortManager
    from launchpad.runner import CommandRunner

    type SampleCallback = Callable[[MonitorSample], Awaitable[object] | object]
    type SleepFn = Callable[[float], Awaitable[None]]

SAMPLE_HISTORY = 100


@dataclass(frozen=True, slots=True)
class MonitorSample:
    """One round of self-checks.

    Attributes:
        timestamp: ISO 8601 time of the sample.
        memory_percent: System memory in use.
        cpu_percent: System CPU use since the previous sample.
        ports: Well-known port occupancy.
        running_processes: Background processes still running.
        warnings: Thresholds exceeded and watched processes that exited.
    """

    timestamp: str
    memory_percent: float
    cpu_percent: float
    ports: PortHealthSnapshot
    running_processes: int
    warnings: tuple[str, ...] = ()

    @property
    def healthy(self) -> bool:
        return not self.warnings


@final
class Monitor:
    """Samples memory, CPU, port occupancy and process liveness on an interval."""

    __slots__ = (
        "_logger",
        "_on_sample",
        "_ports",
        "_runner",
        "_samples",
        "_sleep",
        "_watched",
        "cpu_threshold",
        "interval",
        "memory_threshold",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        ports: PortManager,
        runner: CommandRunner,
        interval: float = 30.0,
        memory_threshold: float = 90.0,
        cpu_threshold: float = 90.0,
        watched: Iterable[str] = (),
        on_sample: SampleCallback | None = None,
        sleep: SleepFn | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            ports: Port manager providing health snapshots.
            runner: Runner whose process table is checked.
            interval: Seconds between samples.
            memory_threshold: Memory percentage that raises a warning.
            cpu_threshold: CPU percentage that raises a warning.
            watched: Process ids expected to keep running.
            on_sample: Called with every sample.
            sleep: Awaitable sleep between samples (defaults to anyio.sleep).
            logger: Logger for monitor events.
        """
        self.interval = interval
        self.memory_threshold = memory_threshold
        self.cpu_threshold = cpu_threshold
        self._ports = ports
        self._runner = runner
        self._watched = tuple(watched)
        self._on_sample = on_sample
        self._sleep: SleepFn = sleep or anyio.sleep
        self._logger: FilteringBoundLogger = logger or get_default_logger()
        self._samples: deque[MonitorSample] = deque(maxlen=SAMPLE_HISTORY)

    @property
    def samples(self) -> tuple[MonitorSample, ...]:
        """Return the most recent samples, oldest first."""
        return tuple(self._samples)

    def _dead_processes(self) -> list[str]:
        messages: list[str] = []
        for process_id in self._watched:
            try:
                handle = self._runner.get(process_id)
            except ProcessNotFoundError:
                messages.append(f"Process {process_id} is no longer tracked")
                continue
            if not handle.running:
                messages.append(f"Process {process_id} exited with status {handle.exit_code}")
        return messages

    async def check(self) -> MonitorSample:
        """Take one sample."""
        memory = psutil.virtual_memory().percent
        cpu = psutil.cpu_percent(interval=None)
        snapshot = await self._ports.health_snapshot()

        warnings: list[str] = []
        if memory >= self.memory_threshold:
            warnings.append(f"Memory use {memory:.0f}% exceeds {self.memory_threshold:.0f}%")
        if cpu >= self.cpu_threshold:
            warnings.append(f"CPU use {cpu:.0f}% exceeds {self.cpu_threshold:.0f}%")
        warnings.extend(self._dead_processes())

        sample = MonitorSample(
            timestamp=get_timestamp(),
            memory_percent=memory,
            cpu_percent=cpu,
            ports=snapshot,
            running_processes=len(self._runner.list_running()),
            warnings=tuple(warnings),
        )
        self._samples.append(sample)

        occupied = sorted(
            name for name, health in snapshot.services.items() if not health.available
        )
        if warnings:
            self._logger.warning(
                "monitor_warning", warnings=list(warnings), occupied_ports=occupied
            )
        else:
            self._logger.info(
                "monitor_sample",
                memory_percent=memory,
                cpu_percent=cpu,
                occupied_ports=occupied,
                running_processes=sample.running_processes,
            )
        return sample

    async def run(self, *, iterations: int | None = None) -> None:
        """Sample every ``interval`` seconds.

        Args:
            iterations: Number of samples to take; None runs until cancelled.
        """
        # The first call only starts psutil's CPU counter
        _ = psutil.cpu_percent(interval=None)
        self._logger.info("monitor_started", interval=self.interval, iterations=iterations)

        count = 0
        while iterations is None or count < iterations:
            if count:
                await self._sleep(self.interval)
            sample = await self.check()
            count += 1
            if self._on_sample is not None:
                _ = await maybe_await(self._on_sample(sample))
