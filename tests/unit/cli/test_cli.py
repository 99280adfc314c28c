# pyright: reportAny=false
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, cast

import orjson
import pytest
from cyclopts import App
from rich.console import Console

from launchpad.cli import CLIContext, ExitCode, create_app, exit_code_for
from launchpad.cli._commands import register_commands
from launchpad.cli._commands._monitor import format_sample
from launchpad.cli._commands._ports import snapshot_table
from launchpad.enums import Phase, ReportStatus, RunOutcome
from launchpad.orchestrator import DiagnosticReport, MonitorSample
from launchpad.platform import ProcessRef
from launchpad.ports import PortHealth, PortHealthSnapshot
from tests.conftest import python_command

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _toml_list(values: list[str]) -> str:
    # A JSON array of strings is a valid TOML inline array
    return orjson.dumps(values).decode()


def write_project_config(root: Path, *, required_paths: list[str] | None = None) -> None:
    _ = (root / "launchpad.toml").write_text(
        f"""
[preflight]
runtime_command = {_toml_list(python_command("print('v20.11.1')"))}
required_paths = {_toml_list(required_paths or [])}
ensure_directories = []

[ports]
host = "127.0.0.1"
reserve = []

[cleanup]
targets = []

[install]
strategies = []

[validation]
artifact_paths = []
required_scripts = []
env_files = []

[services]
prepare = []

[services.build]
name = "build"
command = {_toml_list(python_command("pass"))}

[retry]
max_attempts = 2
initial_delay = 0.01

[recovery]
retry_delay = 0.01

[commands]
grace_period = 0
""",
        encoding="utf-8",
    )


@pytest.fixture
def launchpad_cli(console: Console) -> Callable[..., int]:
    """Run the CLI with global options and return the exit code."""
    app = create_app(console=console, error_console=console)

    def _run(*args: str) -> int:
        try:
            app.meta(list(args))
        except SystemExit as e:
            return e.code if isinstance(e.code, int) else 1
        else:
            return 0
        finally:
            CLIContext.reset()

    return _run


class TestRunCommand:
    def test_completed_run_exits_zero(
        self,
        launchpad_cli: Callable[..., int],
        project_root: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.delenv("LAUNCHPAD_STRICT_CONFIG", raising=False)
        write_project_config(project_root)

        code = launchpad_cli("--project-root", str(project_root), "run")

        assert code == ExitCode.SUCCESS
        reports = list((project_root / "logs").glob("init-report-*.json"))
        assert len(reports) == 1
        assert orjson.loads(reports[0].read_bytes())["outcome"] == "completed"
        assert list((project_root / "logs").glob("launchpad-*.log"))

    def test_aborted_run_exits_two(
        self,
        launchpad_cli: Callable[..., int],
        project_root: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.delenv("LAUNCHPAD_STRICT_CONFIG", raising=False)
        write_project_config(project_root, required_paths=["missing.txt"])

        code = launchpad_cli("--project-root", str(project_root), "run", "--skip-install")

        assert code == ExitCode.ABORTED

    def test_exception_escaping_the_run_leaves_a_dump(
        self,
        launchpad_cli: Callable[..., int],
        project_root: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.delenv("LAUNCHPAD_STRICT_CONFIG", raising=False)
        write_project_config(project_root)

        async def crash(*_args: object, **_kwargs: object) -> int:
            msg = "event loop torn down"
            raise RuntimeError(msg)

        monkeypatch.setattr("launchpad.cli._commands._run.run_orchestration", crash)
        previous_hook = sys.excepthook

        with pytest.raises(RuntimeError, match="event loop torn down"):
            _ = launchpad_cli("--project-root", str(project_root), "run")

        dumps = list((project_root / "logs").glob("emergency-*-1.json"))
        assert len(dumps) == 1
        data = orjson.loads(dumps[0].read_bytes())
        assert data["error"]["code"] == "System.InitFailed"
        assert data["context"] == {"source": "cli"}
        assert sys.excepthook is previous_hook

    def test_missing_config_file_exits_three(
        self, launchpad_cli: Callable[..., int], tmp_path: Path
    ) -> None:
        code = launchpad_cli("--config", str(tmp_path / "missing.toml"), "run")

        assert code == ExitCode.CONFIG_ERROR


class TestExitCodes:
    def test_values(self) -> None:
        assert [int(c) for c in ExitCode] == [0, 1, 2, 3, 130]

    @pytest.mark.parametrize(
        ("outcome", "status", "expected"),
        [
            (RunOutcome.COMPLETED, ReportStatus.SUCCESS, ExitCode.SUCCESS),
            (RunOutcome.COMPLETED, ReportStatus.WITH_ERRORS, ExitCode.WITH_ERRORS),
            (RunOutcome.ABORTED, ReportStatus.WITH_ERRORS, ExitCode.ABORTED),
            (RunOutcome.INTERRUPTED, ReportStatus.SUCCESS, ExitCode.INTERRUPTED),
        ],
    )
    def test_exit_code_for(
        self, outcome: RunOutcome, status: ReportStatus, expected: ExitCode
    ) -> None:
        report = DiagnosticReport(
            run_id="r",
            timestamp="2024-01-31T12:05:01+00:00",
            duration_ms=10,
            final_phase=Phase.PREFLIGHT,
            status=status,
            outcome=outcome,
        )

        assert exit_code_for(report) is expected


class TestCommandRegistration:
    def test_register_commands_registers_subcommands(self, mocker: "MockerFixture") -> None:
        mock_app = mocker.MagicMock(spec=App)
        register_commands(mock_app)

        assert cast("int", mock_app.command.call_count) == 3


class TestCLIContext:
    def test_default_context_when_unset(self) -> None:
        CLIContext.reset()

        ctx = CLIContext.get_current()

        assert ctx.config.retry.max_attempts == 3
        assert ctx.root == Path.cwd().resolve()


SNAPSHOT = PortHealthSnapshot(
    healthy=False,
    services={
        "frontend": PortHealth(port=5173, available=True),
        "backend": PortHealth(port=5000, available=False, owner=ProcessRef(pid=4242, name="node")),
    },
)


class TestRendering:
    def test_snapshot_table(self, console: Console) -> None:
        with console.capture() as capture:
            console.print(snapshot_table(SNAPSHOT))

        lines = capture.get().splitlines()
        backend = next(line for line in lines if "backend" in line)
        frontend = next(line for line in lines if "frontend" in line)
        assert "occupied" in backend
        assert "node (4242)" in backend
        assert "ready" in frontend
        assert lines.index(backend) < lines.index(frontend)

    def test_format_sample(self) -> None:
        sample = MonitorSample(
            timestamp="2024-01-31T12:05:01+00:00",
            memory_percent=95.2,
            cpu_percent=12.0,
            ports=SNAPSHOT,
            running_processes=0,
            warnings=("Memory use 95% exceeds 90%",),
        )

        text = format_sample(sample)

        assert "memory=95%" in text
        assert "occupied=backend" in text
        assert "[yellow]warning[/yellow]" in text
        assert text.endswith("  - Memory use 95% exceeds 90%")
