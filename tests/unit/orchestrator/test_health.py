import httpx
import pytest

from launchpad.orchestrator import HealthStatus, classify_response, wait_until_reachable

pytestmark = pytest.mark.anyio

URL = "http://127.0.0.1:5000/health"


def client_for(handler: httpx.MockTransport) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=handler)


class TestClassifyResponse:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (200, HealthStatus.HEALTHY),
            (204, HealthStatus.HEALTHY),
            (503, HealthStatus.DEGRADED),
            (404, HealthStatus.NOT_READY),
            (500, HealthStatus.NOT_READY),
        ],
    )
    def test_maps_status_codes(self, status: int, expected: HealthStatus) -> None:
        assert classify_response(httpx.Response(status)) is expected


class TestWaitUntilReachable:
    async def test_polls_until_service_answers(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            if len(calls) < 3:
                msg = "connection refused"
                raise httpx.ConnectError(msg, request=request)
            return httpx.Response(200, json={"status": "ok"})

        async with client_for(httpx.MockTransport(handler)) as client:
            status = await wait_until_reachable(URL, timeout=5, interval=0.01, client=client)

        assert status is HealthStatus.HEALTHY
        assert len(calls) == 3

    async def test_degraded_stops_polling(self) -> None:
        calls: list[int] = []

        def handler(_request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(503)

        async with client_for(httpx.MockTransport(handler)) as client:
            status = await wait_until_reachable(URL, timeout=5, interval=0.01, client=client)

        assert status is HealthStatus.DEGRADED
        assert len(calls) == 1

    async def test_gives_up_after_timeout(self) -> None:
        async with client_for(httpx.MockTransport(lambda _r: httpx.Response(404))) as client:
            status = await wait_until_reachable(URL, timeout=0.1, interval=0.02, client=client)

        assert status is HealthStatus.NOT_READY

    async def test_connection_errors_until_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            msg = "connection refused"
            raise httpx.ConnectError(msg, request=request)

        async with client_for(httpx.MockTransport(handler)) as client:
            status = await wait_until_reachable(URL, timeout=0.1, interval=0.02, client=client)

        assert status is HealthStatus.NOT_READY
