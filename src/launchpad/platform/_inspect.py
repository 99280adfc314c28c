"""Helpers shared by the platform variants.

Inspection commands are run with a short timeout; any failure to run them is
reported as ``None`` so callers can fall back to fail-open behaviour.
"""

from __future__ import annotations

import os
import platform as pyplatform
import shutil
import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

import anyio
import psutil

from launchpad.exceptions import DirectoryRemovalError

from ._models import SystemInfo

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

INSPECTION_TIMEOUT = 5.0


@dataclass(frozen=True, slots=True)
class InspectionResult:
    """Captured output of an inspection command."""

    exit_code: int
    stdout: str
    stderr: str


async def run_inspection(
    argv: Sequence[str],
    *,
    timeout: float = INSPECTION_TIMEOUT,
) -> InspectionResult | None:
    """Run an OS inspection command and capture its output.

    Args:
        argv: Command and arguments.
        timeout: Seconds before the command is abandoned.

    Returns:
        The result, or None if the command could not be run or timed out.
    """
    with anyio.move_on_after(timeout):
        try:
            completed = await anyio.run_process(
                list(argv),
                check=False,
                stdin=subprocess.DEVNULL,
            )
        except OSError:
            return None
        return InspectionResult(
            exit_code=completed.returncode,
            stdout=completed.stdout.decode(errors="replace"),
            stderr=completed.stderr.decode(errors="replace"),
        )
    return None


def parse_lsof_pids(output: str) -> list[int]:
    """Parse ``lsof -t`` output: one PID per line.

    Lines that are not plain integers are skipped.
    """
    pids: list[int] = []
    for raw in output.splitlines():
        line = raw.strip()
        if line.isdigit():
            pids.append(int(line))
    return pids


def parse_netstat_pid(output: str, port: int) -> int | None:
    """Find the PID listening on ``port`` in ``netstat -ano`` output.

    Matches lines whose local address ends with ``:port`` and whose last
    column is a PID, e.g. ``TCP  0.0.0.0:5000  0.0.0.0:0  LISTENING  1234``.
    """
    suffix = f":{port}"
    for raw in output.splitlines():
        fields = raw.split()
        if len(fields) < 4 or fields[0].upper() not in {"TCP", "UDP"}:
            continue
        if not fields[1].endswith(suffix):
            continue
        if fields[0].upper() == "TCP" and "LISTEN" not in fields[-2].upper():
            continue
        if fields[-1].isdigit():
            return int(fields[-1])
    return None


def process_name(pid: int) -> str | None:
    """Look up the executable name of a process, if it is visible to us."""
    try:
        return psutil.Process(pid).name()
    except psutil.Error:
        return None


def remove_tree(path: Path) -> None:
    """Remove a directory tree; a missing path is a no-op.

    Raises:
        DirectoryRemovalError: If removal fails.
    """
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as e:
        msg = f"Failed to remove {path}: {e}"
        raise DirectoryRemovalError(msg, path=path, cause=e) from e


def base_system_info(*, os_version: str | None = None) -> SystemInfo:
    """Collect host details available on every OS."""
    return SystemInfo(
        os=pyplatform.system(),
        arch=pyplatform.machine(),
        cpu_count=os.cpu_count() or 1,
        memory_total=psutil.virtual_memory().total,
        python_version=pyplatform.python_version(),
        os_version=os_version,
    )
