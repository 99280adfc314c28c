"""HTTP health polling for started services."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

import anyio
import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    type SleepFn = Callable[[float], Awaitable[None]]

REQUEST_TIMEOUT = 5.0


class HealthStatus(StrEnum):
    """What a health endpoint reported."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    NOT_READY = "not_ready"


def classify_response(response: httpx.Response) -> HealthStatus:
    """Map a health response to a status: 2xx healthy, 503 degraded."""
    if response.is_success:
        return HealthStatus.HEALTHY
    if response.status_code == httpx.codes.SERVICE_UNAVAILABLE:
        return HealthStatus.DEGRADED
    return HealthStatus.NOT_READY


def _give_up(_state: RetryCallState) -> HealthStatus:
    return HealthStatus.NOT_READY


async def wait_until_reachable(
    url: str,
    *,
    timeout: float = 60.0,
    interval: float = 1.0,
    client: httpx.AsyncClient | None = None,
    sleep: SleepFn | None = None,
) -> HealthStatus:
    """Poll ``url`` until it answers or ``timeout`` elapses.

    Connection errors and non-2xx, non-503 responses keep polling. A 503
    stops polling with DEGRADED; the service is up but reports a problem.

    Args:
        url: Health endpoint.
        timeout: Seconds to keep polling.
        interval: Seconds between polls.
        client: Client to use; a short-lived one is created if None.
        sleep: Awaitable sleep between polls (defaults to anyio.sleep).

    Returns:
        HEALTHY, DEGRADED, or NOT_READY if the deadline passed.
    """
    owned = client is None
    http = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
    try:
        retrying = AsyncRetrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(interval),
            retry=(
                retry_if_exception_type(httpx.HTTPError)
                | retry_if_result(lambda status: status is HealthStatus.NOT_READY)
            ),
            retry_error_callback=_give_up,
            sleep=sleep or anyio.sleep,
        )

        async def probe() -> HealthStatus:
            return classify_response(await http.get(url))

        status: HealthStatus = await retrying(probe)
    finally:
        if owned:
            await http.aclose()
    return status
