from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from egress_relay.api.relay import router as relay_router
from egress_relay.config import Settings, get_settings
from egress_relay.models.schemas import FetchResult
from egress_relay.observability.metrics import PerformanceCounter
from egress_relay.observability.middleware import RequestContextMiddleware
from egress_relay.relay.engine import RelayEngine
from egress_relay.services.auth_service import AuthenticationGate, UnauthorizedError


async def _unauthorized_handler(request: Request, exc: UnauthorizedError) -> JSONResponse:
    body = FetchResult.failure("", "Unauthorized").to_wire()
    return JSONResponse(status_code=401, content=body)


def create_app(settings: Settings | None = None, relay_engine: RelayEngine | None = None) -> FastAPI:
    settings = settings or get_settings()
    counter = PerformanceCounter(capacity=settings.stats_buffer_size, interval=settings.stats_interval_seconds)
    engine = relay_engine or RelayEngine(
        timeout=settings.fetch_timeout_seconds,
        max_redirects=settings.max_redirects,
    )

    app = FastAPI(title="Egress Relay", version="0.1.0")
    app.state.settings = settings
    app.state.counter = counter
    app.state.gate = AuthenticationGate(settings.proxy_api_key, counter)
    app.state.relay_engine = engine

    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(UnauthorizedError, _unauthorized_handler)
    app.include_router(relay_router)

    @app.on_event("startup")
    async def _startup() -> None:
        counter.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await counter.stop()
        await engine.aclose()

    @app.get("/check", response_class=PlainTextResponse)
    async def check() -> str:
        return "Hello, World!"

    return app
