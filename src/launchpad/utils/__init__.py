"""Shared utilities: run logging, JSON artifacts and timestamps."""

from ._async import maybe_await
from ._json import write_json_atomic
from ._logging import LogFormatType, RunLog, create_run_logger, get_default_logger
from ._time import compact_timestamp, get_timestamp, utc_now

__all__ = [
    "LogFormatType",
    "RunLog",
    "compact_timestamp",
    "create_run_logger",
    "get_default_logger",
    "get_timestamp",
    "maybe_await",
    "utc_now",
    "write_json_atomic",
]
