"""Timestamp helpers."""

import pendulum


def utc_now() -> pendulum.DateTime:
    """Return the current time in UTC."""
    return pendulum.now("UTC")


def get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    return utc_now().to_iso8601_string()


def compact_timestamp() -> str:
    """Return a filesystem-safe UTC timestamp such as ``20240131T120501``."""
    return utc_now().format("YYYYMMDD[T]HHmmss")
