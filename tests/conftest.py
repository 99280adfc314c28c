"""Shared test fixtures for launchpad tests."""

import shutil
import socket
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import anyio.lowlevel
import pytest
from rich.console import Console

from launchpad.config import LaunchpadConfig
from launchpad.exceptions import DirectoryRemovalError
from launchpad.platform import ProcessRef, SystemInfo

PYTHON = sys.executable


def free_port() -> int:
    """Return a port nothing was listening on a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


class FakePlatform:
    """In-memory platform adapter.

    Ports are "owned" by registering a listening socket with ``occupy()``;
    killing the owner closes the socket, so the port really becomes free.
    """

    def __init__(self) -> None:
        self.owners: dict[int, ProcessRef] = {}
        self.sockets: dict[int, socket.socket] = {}
        self.kills: list[tuple[ProcessRef, bool]] = []
        self.kill_succeeds = True
        self.kill_frees_port = True
        self.removed: list[Path] = []
        self.unremovable: set[Path] = set()

    @property
    def name(self) -> str:
        return "fake"

    def occupy(self, port: int = 0, *, pid: int = 4242, name: str = "node") -> int:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", port))
        sock.listen(1)
        bound = int(sock.getsockname()[1])
        self.sockets[bound] = sock
        self.owners[bound] = ProcessRef(pid=pid, name=name)
        return bound

    def close(self) -> None:
        for sock in self.sockets.values():
            sock.close()
        self.sockets.clear()
        self.owners.clear()

    async def is_port_bound(self, port: int) -> bool:
        return port in self.owners

    async def process_owning_port(self, port: int) -> ProcessRef | None:
        return self.owners.get(port)

    async def kill_process(self, ref: ProcessRef, *, force: bool = False) -> bool:
        self.kills.append((ref, force))
        if not self.kill_succeeds:
            return False
        if self.kill_frees_port:
            for port, owner in list(self.owners.items()):
                if owner.pid == ref.pid:
                    del self.owners[port]
                    self.sockets.pop(port).close()
        return True

    def remove_directory(self, path: Path) -> None:
        if path in self.unremovable:
            msg = f"Failed to remove {path}: permission denied"
            raise DirectoryRemovalError(msg, path=path)
        self.removed.append(path)
        shutil.rmtree(path, ignore_errors=True)

    async def system_info(self) -> SystemInfo:
        return SystemInfo(
            os="Linux",
            arch="x86_64",
            cpu_count=4,
            memory_total=8 * 1024**3,
            python_version="3.12.0",
        )

    def shell(self) -> tuple[str, ...]:
        return ("/bin/sh", "-c")


class SleepRecorder:
    """Awaitable stand-in for ``anyio.sleep`` that records the requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await anyio.lowlevel.checkpoint()

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fake_platform() -> Iterator[FakePlatform]:
    platform = FakePlatform()
    yield platform
    platform.close()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def console() -> Console:
    return Console(
        width=100,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )


def python_command(script: str) -> list[str]:
    """Return an argv list running ``script`` with the test interpreter."""
    return [PYTHON, "-c", script]


def quiet_config_data(**sections: dict[str, Any]) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Return configuration that runs every phase without npm, node or real ports.

    Sections passed as keyword arguments are merged over the quiet defaults.
    """
    data: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
        "preflight": {
            "runtime_command": python_command("print('v20.11.1')"),
            "minimum_runtime": "18.0.0",
            "required_paths": [],
            "ensure_directories": [],
        },
        "ports": {"host": "127.0.0.1", "reserve": [], "max_retries": 2, "retry_delay": 0.01},
        "cleanup": {"targets": []},
        "install": {"strategies": [], "artifacts_dir": "node_modules"},
        "validation": {
            "artifact_paths": [],
            "required_scripts": [],
            "env_template": ".env.example",
            "env_files": [],
        },
        "services": {"prepare": [], "build": {"name": "build", "command": python_command("pass")}},
        "retry": {"max_attempts": 2, "initial_delay": 0.01, "timeout": 30},
        "recovery": {"retry_delay": 0.01},
        "commands": {"kill_grace": 1, "grace_period": 0},
    }
    for name, values in sections.items():
        data[name] = {**data.get(name, {}), **values}
    return data


@pytest.fixture
def make_config() -> Callable[..., LaunchpadConfig]:
    """Return a factory building quiet configurations with section overrides."""

    def _make(**sections: dict[str, Any]) -> LaunchpadConfig:  # pyright: ignore[reportExplicitAny]
        return LaunchpadConfig.from_dict(quiet_config_data(**sections))

    return _make


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a minimal application directory with a package manifest."""
    root = tmp_path / "app"
    root.mkdir()
    _ = (root / "package.json").write_text(
        '{"name": "app", "scripts": {"dev": "vite", "build": "vite build", "start": "node ."},'
        ' "dependencies": {"express": "^4.19.0"}, "devDependencies": {"vite": "^5.0.0"}}',
        encoding="utf-8",
    )
    return root
