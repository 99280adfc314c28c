"""Platform adapter: port inspection, process control and filesystem primitives.

Example:
    >>> from launchpad.platform import create_platform
    >>> platform = create_platform()
    >>> await platform.is_port_bound(5000)
"""

from ._factory import create_platform
from ._inspect import InspectionResult, parse_lsof_pids, parse_netstat_pid, run_inspection
from ._macos import MacOSPlatform
from ._models import ProcessRef, SystemInfo
from ._protocol import Platform
from ._unix import UnixPlatform
from ._windows import WindowsPlatform

__all__ = [
    "InspectionResult",
    "MacOSPlatform",
    "Platform",
    "ProcessRef",
    "SystemInfo",
    "UnixPlatform",
    "WindowsPlatform",
    "create_platform",
    "parse_lsof_pids",
    "parse_netstat_pid",
    "run_inspection",
]
