import sys
from pathlib import Path

import anyio
import pytest

from launchpad.enums import ErrorCode, Severity
from launchpad.exceptions import (
    CommandFailedError,
    CommandNotFoundError,
    CommandTimeoutError,
    ProcessNotFoundError,
    RetriesExhaustedError,
)
from launchpad.runner import (
    CommandRunner,
    CommandSpec,
    CriticalCommandPolicy,
    ProcessEvent,
    ProcessEventKind,
    RetryPolicy,
)
from tests.conftest import FakePlatform, SleepRecorder

pytestmark = pytest.mark.anyio


def py(script: str) -> CommandSpec:
    return CommandSpec.of(sys.executable, "-c", script)


def flaky(counter: Path, succeed_on: int) -> CommandSpec:
    """A command that fails until it has been run ``succeed_on`` times."""
    script = (
        "import pathlib, sys\n"
        f"p = pathlib.Path({str(counter)!r})\n"
        "n = int(p.read_text()) + 1 if p.exists() else 1\n"
        "p.write_text(str(n))\n"
        f"sys.exit(0 if n >= {succeed_on} else 1)\n"
    )
    return py(script)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[ProcessEvent] = []

    async def write_event(self, event: ProcessEvent) -> None:
        self.events.append(event)


@pytest.fixture
def runner(
    fake_platform: FakePlatform, sleep_recorder: SleepRecorder, tmp_path: Path
) -> CommandRunner:
    return CommandRunner(
        platform=fake_platform,
        cwd=tmp_path,
        kill_grace=1.0,
        grace_period=0.0,
        sleep=sleep_recorder,
    )


class TestRunOnce:
    async def test_captures_output(self, runner: CommandRunner) -> None:
        result = await runner.run_once(py("import sys; print('hi'); print('err', file=sys.stderr)"))

        assert result.ok
        assert result.exit_code == 0
        assert result.stdout.strip() == "hi"
        assert result.stderr.strip() == "err"
        assert result.attempts_used == 1
        assert result.duration_ms >= 0

    async def test_non_zero_exit_raises(self, runner: CommandRunner) -> None:
        with pytest.raises(CommandFailedError) as exc_info:
            _ = await runner.run_once(py("import sys; sys.exit(3)"))

        error = exc_info.value
        assert error.result.exit_code == 3
        assert error.code is ErrorCode.COMMAND_EXECUTION_FAILED
        assert error.details["exit_code"] == 3

    async def test_missing_executable(self, runner: CommandRunner) -> None:
        with pytest.raises(CommandNotFoundError) as exc_info:
            _ = await runner.run_once(CommandSpec.of("launchpad-no-such-binary"))

        assert exc_info.value.code is ErrorCode.COMMAND_NOT_FOUND

    async def test_timeout_terminates_process(self, runner: CommandRunner) -> None:
        with anyio.fail_after(10):
            with pytest.raises(CommandTimeoutError) as exc_info:
                _ = await runner.run_once(py("import time; time.sleep(30)"), timeout=0.3)

        error = exc_info.value
        assert error.code is ErrorCode.PROCESS_TIMEOUT
        assert error.severity is Severity.MEDIUM
        assert error.details["timeout_ms"] == 300

    async def test_uses_cwd_and_env(self, runner: CommandRunner, tmp_path: Path) -> None:
        result = await runner.run_once(
            py("import os; print(os.getcwd()); print(os.environ['LAUNCHPAD_TEST'])"),
            env={"LAUNCHPAD_TEST": "yes"},
        )

        cwd, value = result.stdout.split()
        assert Path(cwd).resolve() == tmp_path.resolve()
        assert value == "yes"


class TestRunWithRetry:
    async def test_succeeds_after_failures(
        self, runner: CommandRunner, sleep_recorder: SleepRecorder, tmp_path: Path
    ) -> None:
        policy = RetryPolicy(max_attempts=3, initial_delay=0.5, backoff_multiplier=2.0)

        result = await runner.run_with_retry(flaky(tmp_path / "count", 3), policy)

        assert result.attempts_used == 3
        assert sleep_recorder.calls == [0.5, 1.0]

    async def test_exhaustion_reports_history(
        self, runner: CommandRunner, sleep_recorder: SleepRecorder
    ) -> None:
        policy = RetryPolicy(max_attempts=3, initial_delay=1.0, backoff_multiplier=2.0)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            _ = await runner.run_with_retry(py("import sys; sys.exit(1)"), policy)

        error = exc_info.value
        assert error.attempts == 3
        assert [entry["attempt"] for entry in error.history] == [1, 2, 3]
        assert isinstance(error.last_error, CommandFailedError)
        # No wait after the final attempt
        assert sleep_recorder.calls == [1.0, 2.0]
        assert sleep_recorder.total == policy.total_delay()

    async def test_timeouts_are_retried(
        self, runner: CommandRunner, sleep_recorder: SleepRecorder
    ) -> None:
        policy = RetryPolicy(max_attempts=2, initial_delay=0.1, timeout=0.3)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            _ = await runner.run_with_retry(py("import time; time.sleep(30)"), policy)

        assert exc_info.value.history[0]["code"] == "Process.Timeout"
        assert isinstance(exc_info.value.last_error, CommandTimeoutError)
        assert sleep_recorder.calls == [0.1]

    async def test_critical_command_runs_cleanup_between_attempts(
        self, fake_platform: FakePlatform, sleep_recorder: SleepRecorder, tmp_path: Path
    ) -> None:
        marker = tmp_path / "cleaned"
        partial_dir = tmp_path / "partial"
        partial_dir.mkdir()
        policy = CriticalCommandPolicy(
            match="critical-step",
            cleanup_commands=(py(f"open({str(marker)!r}, 'a').write('x')"),),
            remove_paths=(Path("partial"),),
        )
        runner = CommandRunner(
            platform=fake_platform,
            cwd=tmp_path,
            critical_policies=[policy],
            sleep=sleep_recorder,
        )

        with pytest.raises(RetriesExhaustedError):
            _ = await runner.run_with_retry(
                py("import sys; sys.exit(1)  # critical-step"),
                RetryPolicy(max_attempts=3, initial_delay=0.0),
            )

        # Cleanup runs before each retry, never after the last attempt
        assert marker.read_text() == "xx"
        assert fake_platform.removed == [tmp_path / "partial", tmp_path / "partial"]

    async def test_critical_false_skips_cleanup(
        self, fake_platform: FakePlatform, sleep_recorder: SleepRecorder, tmp_path: Path
    ) -> None:
        marker = tmp_path / "cleaned"
        runner = CommandRunner(
            platform=fake_platform,
            cwd=tmp_path,
            critical_policies=[
                CriticalCommandPolicy(
                    match="critical-step",
                    cleanup_commands=(py(f"open({str(marker)!r}, 'a').write('x')"),),
                )
            ],
            sleep=sleep_recorder,
        )

        with pytest.raises(RetriesExhaustedError):
            _ = await runner.run_with_retry(
                py("import sys; sys.exit(1)  # critical-step"),
                RetryPolicy(max_attempts=2, initial_delay=0.0),
                critical=False,
            )

        assert not marker.exists()


class TestBackgroundProcesses:
    async def test_spawn_requires_entered_runner(self, runner: CommandRunner) -> None:
        with pytest.raises(RuntimeError):
            _ = await runner.spawn_async(py("pass"))

    async def test_streams_output_and_events(
        self, fake_platform: FakePlatform, tmp_path: Path
    ) -> None:
        sink = RecordingSink()
        chunks: list[str] = []
        exits: list[int | None] = []

        async with CommandRunner(
            platform=fake_platform, cwd=tmp_path, grace_period=30.0, sink=sink
        ) as runner:
            handle = await runner.spawn_async(
                py("print('hello', flush=True)"),
                on_output=chunks.append,
                on_exit=exits.append,
            )
            with anyio.fail_after(10):
                exit_code = await handle.wait()

            assert exit_code == 0
            assert "hello" in handle.output
            assert "hello" in "".join(chunks)
            assert runner.get(handle.id) is handle
            assert handle.end_time is not None
            await anyio.sleep(0.05)
            assert exits == [0]

        kinds = [event.kind for event in sink.events]
        assert kinds[0] is ProcessEventKind.STARTED
        assert ProcessEventKind.STDOUT in kinds
        assert kinds[-1] is ProcessEventKind.EXITED

    async def test_timeout_emits_timeout_event(
        self, fake_platform: FakePlatform, tmp_path: Path
    ) -> None:
        sink = RecordingSink()

        async with CommandRunner(
            platform=fake_platform, cwd=tmp_path, kill_grace=1.0, grace_period=30.0, sink=sink
        ) as runner:
            handle = await runner.spawn_async(py("import time; time.sleep(30)"), timeout=0.3)
            with anyio.fail_after(10):
                _ = await handle.wait()

            assert handle.timed_out
            assert not handle.running

        timeouts = [e for e in sink.events if e.kind is ProcessEventKind.TIMEOUT]
        assert len(timeouts) == 1
        assert timeouts[0].record is not None
        assert timeouts[0].record.code is ErrorCode.PROCESS_TIMEOUT

    async def test_terminate_and_list(self, fake_platform: FakePlatform, tmp_path: Path) -> None:
        async with CommandRunner(
            platform=fake_platform, cwd=tmp_path, kill_grace=1.0, grace_period=30.0
        ) as runner:
            handle = await runner.spawn_async(py("import time; time.sleep(30)"))

            assert runner.list_running() == [handle]
            assert runner.terminate(handle.id)
            with anyio.fail_after(10):
                _ = await handle.wait()

            assert runner.list_running() == []
            assert runner.list_all() == [handle]
            assert not runner.terminate(handle.id)

    async def test_exited_process_is_evicted_after_grace_period(
        self, fake_platform: FakePlatform, tmp_path: Path
    ) -> None:
        async with CommandRunner(platform=fake_platform, cwd=tmp_path, grace_period=0.0) as runner:
            handle = await runner.spawn_async(py("pass"))
            with anyio.fail_after(10):
                _ = await handle.wait()
            await anyio.sleep(0.1)

            with pytest.raises(ProcessNotFoundError):
                _ = runner.get(handle.id)

    async def test_exit_terminates_running_processes(
        self, fake_platform: FakePlatform, tmp_path: Path
    ) -> None:
        with anyio.fail_after(10):
            async with CommandRunner(
                platform=fake_platform, cwd=tmp_path, kill_grace=1.0
            ) as runner:
                handle = await runner.spawn_async(py("import time; time.sleep(30)"))

        assert handle.exit_code is not None
        assert not handle.running


class TestProcessTable:
    def test_unknown_id_raises_key_error(self, runner: CommandRunner) -> None:
        with pytest.raises(KeyError):
            _ = runner.get("proc-missing")

        with pytest.raises(ProcessNotFoundError) as exc_info:
            _ = runner.terminate("proc-missing")
        assert exc_info.value.process_id == "proc-missing"


class TestStatistics:
    async def test_summarizes_history(
        self, runner: CommandRunner, tmp_path: Path
    ) -> None:
        _ = await runner.run_once(py("pass"))
        with pytest.raises(CommandFailedError):
            _ = await runner.run_once(py("import sys; sys.exit(1)"))
        _ = await runner.run_with_retry(
            flaky(tmp_path / "count", 2), RetryPolicy(max_attempts=3, initial_delay=0.0)
        )

        stats = runner.statistics()

        assert stats.total == 3
        assert stats.successful == 2
        assert stats.failed == 1
        assert stats.with_retries == 1
        assert stats.average_attempts == pytest.approx(4 / 3, abs=0.01)
        assert [entry.success for entry in runner.history] == [True, False, True]
