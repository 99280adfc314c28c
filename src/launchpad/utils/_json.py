"""JSON file output for reports and emergency dumps."""

import tempfile
from pathlib import Path
from typing import Any

import orjson

from launchpad.exceptions import ArtifactWriteError


def _atomic_write(path: Path, content: bytes) -> None:
    """Write content to a file atomically.

    Writes to a temporary file in the same directory, then renames to the
    target path.

    Raises:
        ArtifactWriteError: If the write operation fails.
    """
    temp_path: Path | None = None
    try:
        _ = path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            _ = f.write(content)
            temp_path = Path(f.name)

        # Path.replace() is atomic on both POSIX and Windows
        _ = temp_path.replace(path)

    except OSError as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        msg = f"Failed to write file: {e}"
        raise ArtifactWriteError(msg, path=path, cause=e) from e


def write_json_atomic(
    path: Path,
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
) -> None:
    """Write a dictionary as indented JSON atomically.

    Values orjson cannot encode natively are written as their ``str()``.

    Args:
        path: Destination file path.
        data: Dictionary to serialize as JSON.

    Raises:
        ArtifactWriteError: If serialization or the write fails.
    """
    try:
        content = orjson.dumps(data, default=str, option=orjson.OPT_INDENT_2)
    except TypeError as e:
        msg = f"Failed to serialize JSON: {e}"
        raise ArtifactWriteError(msg, path=path, cause=e) from e

    _atomic_write(path, content)
