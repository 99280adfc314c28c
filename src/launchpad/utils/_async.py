"""Helpers for callbacks that may be sync or async."""

import inspect


async def maybe_await[T](value: T) -> object:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
