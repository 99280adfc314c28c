"""Default configuration values.

Section defaults live on the models; this module holds the names and lists
that are shared with the loader and documentation.
"""

from typing import Any

CONFIG_FILENAME = "launchpad.toml"
ENV_PREFIX = "LAUNCHPAD_"
STRICT_ENV_VAR = "LAUNCHPAD_STRICT_CONFIG"

DEFAULT_CLEANUP_TARGETS: tuple[str, ...] = (
    "node_modules/.vite",
    "node_modules/.cache",
    ".next",
    "coverage",
    "dist",
    ".parcel-cache",
)

DEFAULT_INSTALL_STRATEGIES: tuple[dict[str, Any], ...] = (  # pyright: ignore[reportExplicitAny]
    {"name": "fast install", "command": ["npm", "ci", "--prefer-offline"]},
    {"name": "standard install", "command": ["npm", "install", "--no-audit", "--no-fund"]},
    {"name": "legacy peer deps install", "command": ["npm", "install", "--legacy-peer-deps"]},
    {"name": "forced install", "command": ["npm", "install", "--force"]},
)

DEFAULT_REQUIRED_PORTS: tuple[dict[str, Any], ...] = (  # pyright: ignore[reportExplicitAny]
    {"service": "backend", "port": 5000, "required": True},
    {"service": "frontend", "port": 5173, "required": False},
)
