"""Configuration models.

This module provides Pydantic models for launchpad configuration sections
and the main LaunchpadConfig container class.
"""

from launchpad.config._models._common import (
    CommandValue,
    ConfigSource,
    ConfigSourceName,
    LogFormat,
    LogLevel,
    build_command,
)
from launchpad.config._models._config import LaunchpadConfig
from launchpad.config._models._sections import (
    CleanupConfig,
    CommandsConfig,
    CriticalCommandConfig,
    InstallConfig,
    InstallStrategyConfig,
    LoggingConfig,
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
)

__all__ = [
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
]
