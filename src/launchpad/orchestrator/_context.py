"""Per-run orchestration state."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Self

from launchpad.platform import create_platform
from launchpad.ports import PortManager
from launchpad.recovery import ErrorHandler
from launchpad.runner import CommandRunner, LogEventSink
from launchpad.utils import compact_timestamp, get_default_logger

from ._phases import PhaseTracker

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from structlog.typing import FilteringBoundLogger

    from launchpad.config import LaunchpadConfig
    from launchpad.platform import Platform, SystemInfo
    from launchpad.recovery import ErrorRecord
    from launchpad.runner import ProcessEventSink, ProcessHandle

    type Notifier = Callable[[ErrorRecord, Path | None], Awaitable[object] | object]
    type RestartCallback = Callable[[str | None], Awaitable[object] | object]
    type SleepFn = Callable[[float], Awaitable[None]]


def new_run_id() -> str:
    """Return a run identifier such as ``20240131T120501-4821``."""
    return f"{compact_timestamp()}-{time.monotonic_ns() % 10000:04d}"


@dataclass(slots=True)
class OrchestrationContext:
    """Everything one run shares between its phases.

    Built once per run by :meth:`create`; nothing here is module-global.

    Attributes:
        run_id: Identifier used in log, report and dump file names.
        project_root: Directory the application lives in.
        config: Effective configuration.
        logger: Run logger.
        platform: Platform adapter.
        runner: Command runner (entered by the orchestrator).
        ports: Port manager.
        recovery: Error handler holding the rollback stack.
        phases: Phase tracker.
        warnings: Warnings for the report, oldest first.
        fixes: Fixes applied during the run, oldest first.
        errors: Records that were not recovered.
        system_info: Host details, gathered at the start of the run.
        dev_server: Background dev server, when one was started.
        sleep: Awaitable sleep shared by every component, if injected.
    """

    run_id: str
    project_root: Path
    config: LaunchpadConfig
    logger: FilteringBoundLogger
    platform: Platform
    runner: CommandRunner
    ports: PortManager
    recovery: ErrorHandler
    phases: PhaseTracker = field(default_factory=PhaseTracker)
    warnings: list[str] = field(default_factory=list)
    fixes: list[str] = field(default_factory=list)
    errors: list[ErrorRecord] = field(default_factory=list)
    system_info: SystemInfo | None = None
    dev_server: ProcessHandle | None = None
    sleep: SleepFn | None = None
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        config: LaunchpadConfig,
        *,
        project_root: Path | None = None,
        run_id: str | None = None,
        platform: Platform | None = None,
        logger: FilteringBoundLogger | None = None,
        sink: ProcessEventSink | None = None,
        sleep: SleepFn | None = None,
        notifier: Notifier | None = None,
        on_restart: RestartCallback | None = None,
    ) -> Self:
        """Wire up the collaborators for one run.

        Args:
            config: Effective configuration.
            project_root: Application directory (the current directory if None).
            run_id: Run identifier; generated if None.
            platform: Platform adapter; detected if None.
            logger: Run logger; the default launchpad logger if None.
            sink: Receiver of background process events; events are logged
                if None.
            sleep: Awaitable sleep shared by every component.
            notifier: Called by the error handler when a failure escalates.
            on_restart: Called by the error handler when a restart is requested.

        Returns:
            A context whose runner has not been entered yet.
        """
        root = (project_root or Path.cwd()).resolve()
        run_id = run_id or new_run_id()
        log = logger or get_default_logger()
        platform = platform or create_platform(logger=log)
        fixes: list[str] = []

        runner = CommandRunner(
            platform=platform,
            cwd=root,
            critical_policies=config.commands.policies(),
            default_timeout=config.commands.default_timeout,
            kill_grace=config.commands.kill_grace,
            grace_period=config.commands.grace_period,
            sink=sink or LogEventSink(log),
            sleep=sleep,
            logger=log,
        )
        ports = PortManager(
            platform=platform,
            host=config.ports.host,
            well_known=config.ports.well_known,
            on_fix=fixes.append,
            sleep=sleep,
            logger=log,
        )
        recovery = ErrorHandler(
            run_id=run_id,
            dump_dir=root / config.recovery.dump_dir,
            retry_delay=config.recovery.retry_delay,
            escalation_threshold=config.recovery.escalation_threshold,
            notifier=notifier,
            on_restart=on_restart,
            sleep=sleep,
            logger=log,
        )
        return cls(
            run_id=run_id,
            project_root=root,
            config=config,
            logger=log,
            platform=platform,
            runner=runner,
            ports=ports,
            recovery=recovery,
            fixes=fixes,
            sleep=sleep,
        )

    def path(self, relative: str) -> Path:
        """Resolve a configured path against the project root."""
        candidate = Path(relative)
        return candidate if candidate.is_absolute() else self.project_root / candidate

    def warn(self, message: str) -> None:
        """Add a warning to the report."""
        self.warnings.append(message)
        self.logger.warning("run_warning", message=message)

    def fix(self, message: str) -> None:
        """Record a fix applied during the run."""
        self.fixes.append(message)
        self.logger.info("fix_applied", message=message)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)
