"""Layered configuration for launchpad.

Values merge from lowest to highest precedence: built-in defaults, the
project's ``launchpad.toml``, ``LAUNCHPAD_*`` environment variables, and CLI
overrides. The result is a frozen :class:`LaunchpadConfig`.

Key Components:
    LaunchpadConfig: Container with one typed model per section.
    safe_load_config: Load with stderr warnings, or exit in strict mode.
    build_command: Turn a configured command into a CommandSpec.

Example:
    >>> from launchpad.config import LaunchpadConfig
    >>> config = LaunchpadConfig.from_dict({"ports": {"auto_kill": False}})
    >>> config.ports.auto_kill
    False
"""

from ._defaults import (
    CONFIG_FILENAME,
    DEFAULT_CLEANUP_TARGETS,
    DEFAULT_INSTALL_STRATEGIES,
    DEFAULT_REQUIRED_PORTS,
    ENV_PREFIX,
    STRICT_ENV_VAR,
)
from ._load import CONFIG_ERROR_EXIT, safe_load_config
from ._loader import deep_merge, parse_env_value, parse_env_vars, read_toml_file
from ._models import (
    CleanupConfig,
    CommandsConfig,
    CommandValue,
    ConfigSource,
    ConfigSourceName,
    CriticalCommandConfig,
    InstallConfig,
    InstallStrategyConfig,
    LaunchpadConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MonitoringConfig,
    PortsConfig,
    PortSpec,
    PreflightConfig,
    RecoveryConfig,
    ReportConfig,
    RetryConfig,
    ServiceCommandConfig,
    ServicesConfig,
    ValidationConfig,
    build_command,
)

__all__ = [
    "CONFIG_ERROR_EXIT",
    "CONFIG_FILENAME",
    "DEFAULT_CLEANUP_TARGETS",
    "DEFAULT_INSTALL_STRATEGIES",
    "DEFAULT_REQUIRED_PORTS",
    "ENV_PREFIX",
    "STRICT_ENV_VAR",
    "CleanupConfig",
    "CommandValue",
    "CommandsConfig",
    "ConfigSource",
    "ConfigSourceName",
    "CriticalCommandConfig",
    "InstallConfig",
    "InstallStrategyConfig",
    "LaunchpadConfig",
    "LogFormat",
    "LogLevel",
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
    "build_command",
    "deep_merge",
    "parse_env_value",
    "parse_env_vars",
    "read_toml_file",
    "safe_load_config",
]
