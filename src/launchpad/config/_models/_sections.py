"""Configuration section models."""

from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from launchpad.config._defaults import (
    DEFAULT_CLEANUP_TARGETS,
    DEFAULT_INSTALL_STRATEGIES,
    DEFAULT_REQUIRED_PORTS,
)
from launchpad.ports import DEFAULT_SERVICE_PORTS
from launchpad.runner import (
    DEFAULT_CRITICAL_POLICIES,
    CommandSpec,
    CriticalCommandPolicy,
    RetryPolicy,
)

from ._common import CommandValue, LogFormat, LogLevel

_SECTION_CONFIG = ConfigDict(frozen=True, extra="ignore")


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Run log format.
        dir: Directory for run logs, relative to the project root.
    """

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT
    dir: str = "logs"


class RetryConfig(BaseModel):
    """Default retry policy for commands run by the phases."""

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    timeout: float = Field(default=300.0, gt=0)

    def to_policy(self, *, timeout: float | None = None) -> RetryPolicy:
        """Return the runner policy for these settings."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            backoff_multiplier=self.backoff_multiplier,
            timeout=timeout if timeout is not None else self.timeout,
        )


class CriticalCommandConfig(BaseModel):
    """One critical command policy."""

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    match: str
    cleanup: list[list[str]] = []
    remove_paths: list[str] = []
    remove_when: str | None = None

    def to_policy(self) -> CriticalCommandPolicy:
        """Return the runner policy for this entry."""
        return CriticalCommandPolicy(
            match=self.match,
            cleanup_commands=tuple(CommandSpec.of(*argv) for argv in self.cleanup if argv),
            remove_paths=tuple(Path(p) for p in self.remove_paths),
            remove_when=self.remove_when,
        )


class CommandsConfig(BaseModel):
    """Command runner settings.

    Attributes:
        critical: Critical command policies; None keeps the built-in table.
        default_timeout: Timeout for commands without their own.
        kill_grace: Seconds between SIGTERM and SIGKILL.
        grace_period: Seconds exited background processes stay queryable.
    """

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    critical: list[CriticalCommandConfig] | None = None
    default_timeout: float = Field(default=30.0, gt=0)
    kill_grace: float = Field(default=5.0, ge=0)
    grace_period: float = Field(default=60.0, ge=0)

    def policies(self) -> tuple[CriticalCommandPolicy, ...]:
        """Return the configured critical command policies."""
        if self.critical is None:
            return DEFAULT_CRITICAL_POLICIES
        return tuple(entry.to_policy() for entry in self.critical)


class PortSpec(BaseModel):
    """A port a service needs before start."""

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    service: str
    port: int = Field(ge=1, le=65535)
    required: bool = True


class PortsConfig(BaseModel):
    """Port manager settings.

    Attributes:
        host: Address availability probes bind to.
        auto_kill: Kill processes occupying required ports.
        max_retries: Attempts per port.
        retry_delay: Base delay between attempts in seconds.
        reserve: Ports reserved during preflight.
        well_known: Service ports reported by port health checks.
    """

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    host: str = "0.0.0.0"  # noqa: S104
    auto_kill: bool = True
    max_retries: int = Field(default=5, ge=1)
    retry_delay: float = Field(default=1.0, ge=0)
    reserve: list[PortSpec] = Field(
        default_factory=lambda: [PortSpec.model_validate(p) for p in DEFAULT_REQUIRED_PORTS]
    )
    well_known: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_SERVICE_PORTS))


class PreflightConfig(BaseModel):
    """Preflight checks.

    Attributes:
        runtime_command: Command printing the runtime version; None skips the check.
        minimum_runtime: Lowest accepted runtime version.
        check_write: Probe write permission in the project root.
        required_paths: Paths that must exist in the project root.
        ensure_directories: Directories created if missing.
    """

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    runtime_command: CommandValue | None = Field(default_factory=lambda: ["node", "--version"])
    minimum_runtime: str = "18.0.0"
    check_write: bool = True
    required_paths: list[str] = Field(default_factory=lambda: ["package.json"])
    ensure_directories: list[str] = Field(default_factory=lambda: ["logs"])


class CleanupConfig(BaseModel):
    """Cache and build directories removed before install."""

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    enabled: bool = True
    targets: list[str] = Field(default_factory=lambda: list(DEFAULT_CLEANUP_TARGETS))


class InstallStrategyConfig(BaseModel):
    """One dependency installation strategy."""

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    name: str
    command: CommandValue


class InstallConfig(BaseModel):
    """Dependency installation.

    Attributes:
        enabled: Run the dependencies phase.
        artifacts_dir: Directory created by the installer; removed on
            rollback when this run created it.
        strategies: Strategies tried in order until one succeeds.
    """

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    enabled: bool = True
    artifacts_dir: str = "node_modules"
    strategies: list[InstallStrategyConfig] = Field(
        default_factory=lambda: [
            InstallStrategyConfig.model_validate(s) for s in DEFAULT_INSTALL_STRATEGIES
        ]
    )


class ValidationConfig(BaseModel):
    """Post-install validation.

    Attributes:
        artifact_paths: Paths that must exist after install; missing ones abort.
        manifest: Package manifest (JSON) checked for scripts and dependencies.
        required_scripts: Scripts the manifest must define.
        critical_dependencies: Dependencies the manifest must declare.
        env_template: Template listing required environment variables.
        env_files: Environment files, of which at least one should exist.
    """

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    artifact_paths: list[str] = Field(default_factory=lambda: ["node_modules"])
    manifest: str = "package.json"
    required_scripts: list[str] = Field(default_factory=lambda: ["dev", "build", "start"])
    critical_dependencies: list[str] = []
    env_template: str = ".env.example"
    env_files: list[str] = Field(default_factory=lambda: [".env", ".env.local"])


class ServiceCommandConfig(BaseModel):
    """A named command run during service start."""

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    name: str
    command: CommandValue
    timeout: float = Field(default=300.0, gt=0)


class ServicesConfig(BaseModel):
    """Service start.

    Attributes:
        prepare: Commands preparing persisted state (e.g. schema push).
        build: Readiness build.
        dev_server: Optional long-running server started in the background.
        service_name: Name used for restart requests and port reservation.
        health_url: Health endpoint polled after the dev server starts.
        health_timeout: Seconds to wait for the endpoint.
        health_interval: Seconds between polls.
    """

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    prepare: list[ServiceCommandConfig] = Field(
        default_factory=lambda: [
            ServiceCommandConfig(
                name="database schema", command=["npm", "run", "db:push"], timeout=60.0
            )
        ]
    )
    build: ServiceCommandConfig | None = Field(
        default_factory=lambda: ServiceCommandConfig(
            name="build", command=["npm", "run", "build"], timeout=180.0
        )
    )
    dev_server: ServiceCommandConfig | None = None
    service_name: str = "backend"
    health_url: str | None = None
    health_timeout: float = Field(default=60.0, gt=0)
    health_interval: float = Field(default=1.0, gt=0)


class MonitoringConfig(BaseModel):
    """Self-check loop.

    Attributes:
        enabled: Start the monitor after a successful run.
        interval: Seconds between checks.
        memory_threshold: Memory use percentage that raises a warning.
        cpu_threshold: CPU use percentage that raises a warning.
    """

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    enabled: bool = False
    interval: float = Field(default=30.0, gt=0)
    memory_threshold: float = Field(default=90.0, gt=0, le=100)
    cpu_threshold: float = Field(default=90.0, gt=0, le=100)


class ReportConfig(BaseModel):
    """Diagnostic report output."""

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    dir: str = "logs"


class RecoveryConfig(BaseModel):
    """Error handler settings."""

    model_config: ClassVar[ConfigDict] = _SECTION_CONFIG

    retry_delay: float = Field(default=1.0, ge=0)
    escalation_threshold: int = Field(default=3, ge=1)
    dump_dir: str = "logs"


__all__ = [
    "CleanupConfig",
    "CommandsConfig",
    "CriticalCommandConfig",
    "InstallConfig",
    "InstallStrategyConfig",
    "LoggingConfig",
    "MonitoringConfig",
    "PortSpec",
    "PortsConfig",
    "PreflightConfig",
    "RecoveryConfig",
    "ReportConfig",
    "RetryConfig",
    "ServiceCommandConfig",
    "ServicesConfig",
    "ValidationConfig",
]
