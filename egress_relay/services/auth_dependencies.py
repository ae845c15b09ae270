from __future__ import annotations

from fastapi import Request

from egress_relay.observability.metrics import PerformanceCounter
from egress_relay.relay.engine import RelayEngine
from egress_relay.services.auth_service import AuthenticationGate


def get_gate(request: Request) -> AuthenticationGate:
    return request.app.state.gate


def get_relay_engine(request: Request) -> RelayEngine:
    return request.app.state.relay_engine


def get_counter(request: Request) -> PerformanceCounter:
    return request.app.state.counter


def get_credential(request: Request) -> str | None:
    header_name = request.app.state.settings.auth_header
    return request.headers.get(header_name)


def get_client_address(request: Request) -> str | None:
    if request.client is None:
        return None
    return f"{request.client.host}:{request.client.port}"
