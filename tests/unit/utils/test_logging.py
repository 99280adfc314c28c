# pyright: reportAny=false
import json
import logging
from pathlib import Path

import pytest

from launchpad.utils import create_run_logger
from launchpad.utils._logging import _get_log_level, _log_level_from_string


class TestLogLevel:
    def test_defaults_to_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LAUNCHPAD_DEBUG", raising=False)
        monkeypatch.delenv("LAUNCHPAD_LOG_LEVEL", raising=False)

        assert _get_log_level() == logging.INFO

    def test_debug_env_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LAUNCHPAD_DEBUG", "1")
        monkeypatch.setenv("LAUNCHPAD_LOG_LEVEL", "error")

        assert _get_log_level() == logging.DEBUG

    def test_level_from_string(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LAUNCHPAD_DEBUG", raising=False)

        assert _log_level_from_string("warning", respect_env=True) == logging.WARNING
        assert _log_level_from_string("nonsense") == logging.INFO


class TestCreateRunLogger:
    def test_writes_json_lines_with_run_id(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("LAUNCHPAD_DEBUG", raising=False)
        run_log = create_run_logger(tmp_path / "logs", "run-1", log_format="json")

        run_log.logger.info("phase_started", phase="preflight")
        run_log.logger.debug("hidden")
        run_log.close()

        assert run_log.path == tmp_path / "logs" / "launchpad-run-1.log"
        lines = run_log.path.read_text().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["event"] == "phase_started"
        assert entry["run_id"] == "run-1"
        assert entry["phase"] == "preflight"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_text_format(self, tmp_path: Path) -> None:
        run_log = create_run_logger(tmp_path, "run-2", level="debug")

        run_log.logger.warning("port_fallback", port=5001)
        run_log.close()

        content = run_log.path.read_text()
        assert "port_fallback" in content
        assert "port=5001" in content

    def test_close_is_idempotent(self, tmp_path: Path) -> None:
        run_log = create_run_logger(tmp_path, "run-3")

        run_log.close()
        run_log.close()

        assert run_log.closed
