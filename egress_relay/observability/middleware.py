from __future__ import annotations

import uuid
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.datastructures import MutableHeaders

# Load-balancer health probes would otherwise dominate the access log.
_UNLOGGED_PATHS = frozenset({"/check"})


def _client_address(scope: dict[str, Any]) -> str | None:
    client = scope.get("client")
    return f"{client[0]}:{client[1]}" if client else None


class RequestContextMiddleware:
    """Tags each relay call with a request id and logs one ``relay.access`` event.

    The event carries the status sent to the caller, the size of the JSON
    body handed back and the time spent, so slow or oversized relays can be
    matched against the performance counter's windows.
    """

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = uuid.uuid4().hex
        structlog.contextvars.bind_contextvars(request_id=request_id, client=_client_address(scope))

        started = perf_counter()
        response: dict[str, int | None] = {"status_code": None, "bytes_sent": 0}

        async def send_with_request_id(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                response["status_code"] = message["status"]
                MutableHeaders(scope=message)["X-Request-ID"] = request_id
            elif message["type"] == "http.response.body":
                response["bytes_sent"] = (response["bytes_sent"] or 0) + len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            if scope.get("path") not in _UNLOGGED_PATHS:
                structlog.get_logger("access").info(
                    "relay.access",
                    method=scope.get("method"),
                    path=scope.get("path"),
                    elapsed_ms=round((perf_counter() - started) * 1000.0, 2),
                    **response,
                )
            structlog.contextvars.clear_contextvars()
