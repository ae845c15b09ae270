from __future__ import annotations

import asyncio
import gzip
from collections.abc import AsyncIterator

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from egress_relay.config import get_settings
from egress_relay.main import create_app
from egress_relay.relay.engine import RelayEngine

API_KEY = "test-secret"


class StubUpstream:
    """In-process upstream served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.startswith("/status/"):
            return httpx.Response(int(path.rsplit("/", 1)[-1]), text="upstream says no")
        if path == "/connect-error":
            raise httpx.ConnectError("connection refused", request=request)
        if path == "/slow":
            await asyncio.sleep(5)
            return httpx.Response(200, text="too late")
        if path == "/gzip":
            payload = gzip.compress(b"hello world")
            return httpx.Response(
                200,
                headers={"Content-Encoding": "gzip", "Content-Length": str(len(payload)), "X-Kept": "yes"},
                stream=httpx.ByteStream(payload),
            )
        if path == "/redirect":
            return httpx.Response(302, headers={"Location": "https://example.test/ok"})

        echoed = [("X-Test", value) for value in request.headers.get_list("x-test")]
        return httpx.Response(200, headers=echoed, text="hi")

    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROXY_API_KEY", API_KEY)
    monkeypatch.setenv("STATS_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("STATS_BUFFER_SIZE", "4096")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
async def relay_engine(upstream: StubUpstream) -> AsyncIterator[RelayEngine]:
    engine = RelayEngine(timeout=0.5, transport=httpx.MockTransport(upstream))
    yield engine
    await engine.aclose()


@pytest.fixture
def app(relay_engine: RelayEngine):
    return create_app(get_settings(), relay_engine=relay_engine)


@pytest.fixture
async def api_client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": API_KEY}
