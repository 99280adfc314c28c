import json
from pathlib import Path

import pytest

from launchpad.enums import ErrorCode
from launchpad.exceptions import ArtifactWriteError
from launchpad.utils import compact_timestamp, write_json_atomic


class TestWriteJsonAtomic:
    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "logs" / "nested" / "report.json"

        write_json_atomic(path, {"runId": "abc", "count": 2})

        assert json.loads(path.read_text()) == {"runId": "abc", "count": 2}

    def test_unencodable_values_are_stringified(self, tmp_path: Path) -> None:
        path = tmp_path / "dump.json"

        write_json_atomic(path, {"path": tmp_path, "code": ErrorCode.PROCESS_TIMEOUT})

        data = json.loads(path.read_text())
        assert data["path"] == str(tmp_path)
        assert data["code"] == "Process.Timeout"

    def test_leaves_no_temp_files(self, tmp_path: Path) -> None:
        write_json_atomic(tmp_path / "a.json", {"a": 1})

        assert [p.name for p in tmp_path.iterdir()] == ["a.json"]

    def test_unwritable_destination_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        _ = blocker.write_text("not a directory")

        with pytest.raises(ArtifactWriteError) as exc_info:
            write_json_atomic(blocker / "report.json", {"a": 1})

        assert exc_info.value.code is ErrorCode.SYSTEM_SHUTDOWN_ERROR


def test_compact_timestamp_is_filesystem_safe() -> None:
    stamp = compact_timestamp()

    assert len(stamp) == 15
    assert stamp[8] == "T"
    assert stamp.replace("T", "").isdigit()
