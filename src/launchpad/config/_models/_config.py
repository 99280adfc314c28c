# pyright: reportExplicitAny=false, reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Configuration container with typed access.

This module provides the LaunchpadConfig class that serves as the primary
interface for accessing launchpad configuration values.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, TypeVar, overload

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from launchpad.config._defaults import CONFIG_FILENAME
from launchpad.config._loader import copy_value, deep_merge, parse_env_vars, read_toml_file
from launchpad.exceptions import ConfigValidationError

from ._common import ConfigSource, ConfigSourceName
from ._sections import (
    CleanupConfig,
    CommandsConfig,
    InstallConfig,
    LoggingConfig,
    MonitoringConfig,
    PortsConfig,
    PreflightConfig,
    RecoveryConfig,
    ReportConfig,
    RetryConfig,
    ServicesConfig,
    ValidationConfig,
)

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Self

T = TypeVar("T")


class LaunchpadConfig(BaseModel):
    """Configuration container with typed access.

    Every section has defaults, so an empty dictionary is a valid
    configuration. Use factory methods to create instances.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    ports: PortsConfig = Field(default_factory=PortsConfig)
    preflight: PreflightConfig = Field(default_factory=PreflightConfig)
    cleanup: CleanupConfig = Field(default_factory=CleanupConfig)
    install: InstallConfig = Field(default_factory=InstallConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    services: ServicesConfig = Field(default_factory=ServicesConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)

    _data: dict[str, Any] = PrivateAttr(default_factory=dict)
    _sources: tuple[ConfigSource, ...] = PrivateAttr(default=())

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        sources: tuple[ConfigSource, ...] = (),
        source: str | None = None,
    ) -> Self:
        """Create configuration from a dictionary.

        Args:
            data: Dictionary of configuration values.
            sources: Sources that contributed to ``data``.
            source: Label used in validation error messages.

        Returns:
            Configuration object from the dictionary.

        Raises:
            ConfigValidationError: If a value has the wrong type or range.
        """
        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            errors = [
                {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                for err in e.errors()
            ]
            where = f" in {source}" if source else ""
            msg = f"Invalid configuration{where}: " + "; ".join(
                f"{err['loc']}: {err['msg']}" for err in errors
            )
            raise ConfigValidationError(msg, errors=errors, source=source) from e

        config._data = copy_value(data)
        config._sources = sources
        return config

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Load configuration from a specific file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigLoadError: If the file cannot be parsed.
            ConfigValidationError: If validation fails.
        """
        data = read_toml_file(path)
        source = ConfigSource(
            name=ConfigSourceName.PROJECT,
            path=path,
            exists=True,
            values=data,
        )
        return cls.from_dict(data, sources=(source,), source=str(path))

    @classmethod
    def load(
        cls,
        *,
        project_root: Path | None = None,
        config_path: Path | None = None,
        include_env: bool = True,
        environ: dict[str, str] | None = None,
        cli_overrides: dict[str, Any] | None = None,
    ) -> Self:
        """Load merged configuration from all sources.

        Sources merge in precedence order: defaults, then the project file
        (``config_path`` or ``<project_root>/launchpad.toml``), then
        ``LAUNCHPAD_*`` environment variables, then CLI overrides.

        Args:
            project_root: Directory searched for ``launchpad.toml``.
            config_path: Explicit config file; must exist.
            include_env: Include environment variables as a source.
            environ: Mapping read instead of ``os.environ``.
            cli_overrides: Nested dictionary of CLI argument overrides.

        Returns:
            Merged configuration object.

        Raises:
            FileNotFoundError: If ``config_path`` does not exist.
            ConfigLoadError: If the config file cannot be parsed.
            ConfigValidationError: If the merged config fails validation.
        """
        from pathlib import Path  # noqa: PLC0415

        # Sources in lowest-to-highest precedence
        loaded: list[ConfigSource] = [
            ConfigSource(name=ConfigSourceName.DEFAULT, path=None, exists=True, values={}),
        ]

        if config_path is not None:
            loaded.append(
                ConfigSource(
                    name=ConfigSourceName.PROJECT,
                    path=config_path,
                    exists=True,
                    values=read_toml_file(config_path),
                )
            )
        else:
            candidate = (project_root or Path.cwd()) / CONFIG_FILENAME
            exists = candidate.is_file()
            loaded.append(
                ConfigSource(
                    name=ConfigSourceName.PROJECT,
                    path=candidate,
                    exists=exists,
                    values=read_toml_file(candidate) if exists else {},
                )
            )

        if include_env:
            env_values = parse_env_vars(environ=environ)
            loaded.append(
                ConfigSource(
                    name=ConfigSourceName.ENV,
                    path=None,
                    exists=bool(env_values),
                    values=env_values,
                )
            )

        if cli_overrides:
            loaded.append(
                ConfigSource(
                    name=ConfigSourceName.CLI,
                    path=None,
                    exists=True,
                    values=cli_overrides,
                )
            )

        merged: dict[str, Any] = {}
        for source in loaded:
            if source.values:
                merged = deep_merge(merged, source.values)

        return cls.from_dict(merged, sources=tuple(reversed(loaded)))

    @property
    def sources(self) -> list[ConfigSource]:
        """Return the sources that contributed to this configuration.

        Returns:
            List of ConfigSource objects, highest precedence first.
        """
        return list(self._sources)

    @overload
    def get(self, key: str) -> Any: ...

    @overload
    def get(self, key: str, default: T) -> T: ...

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot-notation key.

        Values come from the validated models, so defaults are included.

        Examples:
            >>> config.get("logging.level")
            <LogLevel.INFO: 'info'>
            >>> config.get("nonexistent", "fallback")
            'fallback'
        """
        current: Any = self
        for part in key.split("."):
            if isinstance(current, BaseModel):
                if part not in type(current).model_fields:
                    return default
                current = getattr(current, part)
            elif isinstance(current, dict):
                if part not in current:
                    return default
                current = current[part]
            else:
                return default
        return current

    def to_dict(self, *, include_defaults: bool = True) -> dict[str, Any]:
        """Convert configuration to a dictionary.

        Args:
            include_defaults: When False, return only the values that were
                supplied by a source.
        """
        if include_defaults:
            return self.model_dump(mode="json")
        return copy_value(self._data)
