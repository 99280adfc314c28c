from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Any

from launchpad.exceptions import ConfigError

from ._defaults import STRICT_ENV_VAR
from ._models import LaunchpadConfig

if TYPE_CHECKING:
    from pathlib import Path

#: Process exit status for configuration errors.
CONFIG_ERROR_EXIT = 3


def safe_load_config(
    *,
    config_path: Path | None = None,
    project_root: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
) -> tuple[LaunchpadConfig, str | None]:
    """Load configuration with error handling.

    Attempts to load configuration and handles errors based on the
    LAUNCHPAD_STRICT_CONFIG environment variable:
    - If unset or "0": warn to stderr and return the default config
    - If "1": fail fast with sys.exit(3)

    When config_path is provided, the file must exist (explicit user request).

    Args:
        config_path: Explicit path to config file (--config flag).
        project_root: Project root directory (--project-root flag).
        cli_overrides: CLI argument overrides to pass to LaunchpadConfig.load().

    Returns:
        Tuple of (LaunchpadConfig, error_message). On success, error_message is
        None. On failure (non-strict mode), returns the default config with
        the error message.
    """
    strict_mode = os.environ.get(STRICT_ENV_VAR, "0") == "1"

    if config_path is not None and not config_path.exists():
        print(f"Error: Config file not found: {config_path}", file=sys.stderr)  # noqa: T201
        sys.exit(CONFIG_ERROR_EXIT)

    try:
        config = LaunchpadConfig.load(
            project_root=project_root,
            config_path=config_path,
            include_env=True,
            cli_overrides=cli_overrides,
        )
    except ConfigError as e:
        error_msg = str(e)
    except OSError as e:
        error_msg = f"Failed to load config: {e}"
    else:
        return config, None

    if strict_mode:
        print(f"Error: {error_msg}", file=sys.stderr)  # noqa: T201
        sys.exit(CONFIG_ERROR_EXIT)

    print(f"Warning: {error_msg}", file=sys.stderr)  # noqa: T201
    return LaunchpadConfig.from_dict({}), error_msg
