import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from launchpad.exceptions import DirectoryRemovalError
from launchpad.platform import (
    InspectionResult,
    MacOSPlatform,
    Platform,
    ProcessRef,
    UnixPlatform,
    WindowsPlatform,
    create_platform,
    parse_lsof_pids,
    parse_netstat_pid,
    run_inspection,
)
from launchpad.platform._inspect import remove_tree

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

NETSTAT_OUTPUT = """
Active Connections

  Proto  Local Address          Foreign Address        State           PID
  TCP    0.0.0.0:135            0.0.0.0:0              LISTENING       1012
  TCP    0.0.0.0:5000           0.0.0.0:0              LISTENING       4242
  TCP    127.0.0.1:50000        127.0.0.1:5000         ESTABLISHED     7777
  TCP    [::]:5173              [::]:0                 LISTENING       5151
"""


class TestParseLsofPids:
    def test_parses_one_pid_per_line(self) -> None:
        assert parse_lsof_pids("123\n456\n") == [123, 456]

    def test_skips_noise(self) -> None:
        assert parse_lsof_pids("\n  789 \nlsof: WARNING\n") == [789]

    def test_empty_output(self) -> None:
        assert parse_lsof_pids("") == []


class TestParseNetstatPid:
    def test_finds_listening_pid(self) -> None:
        assert parse_netstat_pid(NETSTAT_OUTPUT, 5000) == 4242

    def test_ipv6_address(self) -> None:
        assert parse_netstat_pid(NETSTAT_OUTPUT, 5173) == 5151

    def test_ignores_established_connections(self) -> None:
        assert parse_netstat_pid(NETSTAT_OUTPUT, 50000) is None

    def test_port_suffix_must_match_exactly(self) -> None:
        assert parse_netstat_pid(NETSTAT_OUTPUT, 500) is None


class TestCreatePlatform:
    @pytest.mark.parametrize(
        ("system", "expected"),
        [
            ("Windows", WindowsPlatform),
            ("Darwin", MacOSPlatform),
            ("Linux", UnixPlatform),
            ("FreeBSD", UnixPlatform),
        ],
    )
    def test_selects_variant(self, system: str, expected: type) -> None:
        platform = create_platform(system)

        assert isinstance(platform, expected)
        assert isinstance(platform, Platform)

    def test_shells(self) -> None:
        assert create_platform("Linux").shell() == ("/bin/sh", "-c")
        assert create_platform("Windows").shell()[0] == "powershell.exe"


class TestRemoveTree:
    def test_removes_nested_tree(self, tmp_path: Path) -> None:
        target = tmp_path / "node_modules" / ".cache"
        target.mkdir(parents=True)
        _ = (target / "file.bin").write_bytes(b"x")

        remove_tree(tmp_path / "node_modules")

        assert not (tmp_path / "node_modules").exists()

    def test_missing_path_is_noop(self, tmp_path: Path) -> None:
        remove_tree(tmp_path / "missing")

    def test_failure_raises_directory_removal_error(
        self, tmp_path: Path, mocker: MockerFixture
    ) -> None:
        target = tmp_path / "dist"
        target.mkdir()
        _ = mocker.patch("shutil.rmtree", side_effect=PermissionError("denied"))

        with pytest.raises(DirectoryRemovalError) as exc_info:
            remove_tree(target)

        assert exc_info.value.path == target
        assert isinstance(exc_info.value.cause, PermissionError)


@pytest.mark.anyio
class TestRunInspection:
    async def test_captures_output(self) -> None:
        result = await run_inspection((sys.executable, "-c", "print('42')"))

        assert result is not None
        assert result.exit_code == 0
        assert result.stdout.strip() == "42"

    async def test_missing_tool_returns_none(self) -> None:
        assert await run_inspection(("launchpad-no-such-tool",)) is None

    async def test_timeout_returns_none(self) -> None:
        result = await run_inspection(
            (sys.executable, "-c", "import time; time.sleep(5)"), timeout=0.2
        )

        assert result is None


@pytest.mark.anyio
class TestUnixPlatform:
    async def test_owner_from_lsof(self, mocker: MockerFixture) -> None:
        _ = mocker.patch(
            "launchpad.platform._unix.run_inspection",
            return_value=InspectionResult(exit_code=0, stdout="4242\n", stderr=""),
        )
        _ = mocker.patch("launchpad.platform._unix.process_name", return_value="node")

        platform = UnixPlatform()

        assert await platform.is_port_bound(5000)
        assert await platform.process_owning_port(5000) == ProcessRef(pid=4242, name="node")

    async def test_lsof_no_match_means_free(self, mocker: MockerFixture) -> None:
        _ = mocker.patch(
            "launchpad.platform._unix.run_inspection",
            return_value=InspectionResult(exit_code=1, stdout="", stderr=""),
        )

        assert await UnixPlatform().process_owning_port(5000) is None

    async def test_inspection_failure_is_fail_open(self, mocker: MockerFixture) -> None:
        _ = mocker.patch("launchpad.platform._unix.run_inspection", return_value=None)

        assert not await UnixPlatform().is_port_bound(5000)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
    async def test_kill_process_terminates(self) -> None:
        proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
        try:
            killed = await UnixPlatform().kill_process(ProcessRef(pid=proc.pid), force=True)
            assert killed
            assert proc.wait(timeout=5) != 0
        finally:
            if proc.poll() is None:
                proc.kill()

    async def test_system_info(self) -> None:
        info = await UnixPlatform().system_info()

        assert info.cpu_count >= 1
        assert info.memory_total > 0
        assert info.python_version.count(".") == 2


@pytest.mark.anyio
async def test_windows_owner_from_netstat(mocker: MockerFixture) -> None:
    _ = mocker.patch(
        "launchpad.platform._windows.run_inspection",
        return_value=InspectionResult(exit_code=0, stdout=NETSTAT_OUTPUT, stderr=""),
    )
    _ = mocker.patch("launchpad.platform._windows.process_name", return_value="node.exe")

    owner = await WindowsPlatform().process_owning_port(5000)

    assert owner == ProcessRef(pid=4242, name="node.exe")
