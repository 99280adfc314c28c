"""Data models for the platform adapter."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProcessRef:
    """Reference to an OS process.

    Attributes:
        pid: Process ID.
        name: Executable name, when it could be looked up.
    """

    pid: int
    name: str | None = None


@dataclass(frozen=True, slots=True)
class SystemInfo:
    """Host details recorded in the diagnostic report.

    Attributes:
        os: Operating system family (``Linux``, ``Darwin``, ``Windows``).
        arch: Machine architecture.
        cpu_count: Logical CPU count.
        memory_total: Total physical memory in bytes.
        python_version: Interpreter version running launchpad.
        os_version: OS release or product version, if known.
    """

    os: str
    arch: str
    cpu_count: int
    memory_total: int
    python_version: str
    os_version: str | None = None
