from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from egress_relay.models.schemas import FetchRequest, FetchResult, StatsResponse
from egress_relay.observability.metrics import PerformanceCounter
from egress_relay.relay.engine import RelayEngine
from egress_relay.services.auth_dependencies import (
    get_client_address,
    get_counter,
    get_credential,
    get_gate,
    get_relay_engine,
)
from egress_relay.services.auth_service import AuthenticationGate

router = APIRouter(tags=["relay"])


def _describe_payload_error(exc: ValidationError) -> str:
    errors = exc.errors(include_url=False)
    if not errors:
        return "invalid request payload"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"invalid request payload: {location}: {message}" if location else f"invalid request payload: {message}"


@router.post("/", response_model=FetchResult)
async def relay_fetch(
    request: Request,
    gate: AuthenticationGate = Depends(get_gate),
    engine: RelayEngine = Depends(get_relay_engine),
    credential: str | None = Depends(get_credential),
    client: str | None = Depends(get_client_address),
) -> FetchResult:
    async def operation() -> FetchResult:
        raw = await request.body()
        try:
            fetch_request = FetchRequest.model_validate_json(raw)
        except ValidationError as exc:
            # The URL is unknown when the payload can't be decoded.
            return FetchResult.failure("", _describe_payload_error(exc))
        return await engine.relay(fetch_request)

    return await gate.guard(credential, operation, client=client)


_NON_FETCH_METHODS = ["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"]


@router.api_route("/", methods=_NON_FETCH_METHODS, include_in_schema=False)
async def relay_method_not_allowed(request: Request) -> JSONResponse:
    body = FetchResult.failure("", f"Method not allowed {request.method}").to_wire()
    return JSONResponse(status_code=405, content=body, headers={"Allow": "POST"})


@router.get("/stats", response_model=StatsResponse)
async def stats(
    gate: AuthenticationGate = Depends(get_gate),
    counter: PerformanceCounter = Depends(get_counter),
    credential: str | None = Depends(get_credential),
    client: str | None = Depends(get_client_address),
) -> StatsResponse:
    async def operation() -> StatsResponse:
        return StatsResponse(
            pending_samples=counter.pending(),
            interval_seconds=counter.interval,
            last_window=counter.last_window,
        )

    return await gate.guard(credential, operation, client=client)
