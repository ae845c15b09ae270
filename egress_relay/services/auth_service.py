from __future__ import annotations

import hmac
from collections.abc import Awaitable, Callable
from time import perf_counter
from typing import TypeVar

import structlog

from egress_relay.observability.metrics import PerformanceCounter

T = TypeVar("T")


class UnauthorizedError(Exception):
    """The inbound credential does not match the configured secret."""

    def __init__(self, client: str | None = None) -> None:
        super().__init__("Unauthorized access")
        self.client = client


class AuthenticationGate:
    """Runs an operation only for callers presenting the configured secret.

    Each admitted call is timed and its latency offered to the performance
    counter. A full counter buffer drops the sample; the call result is
    returned unchanged either way.
    """

    def __init__(self, secret: str, counter: PerformanceCounter) -> None:
        self._secret = secret.encode("utf-8")
        self.counter = counter

    def is_authorized(self, credential: str | None) -> bool:
        # An unset secret admits nobody.
        if not self._secret or credential is None:
            return False
        return hmac.compare_digest(credential.encode("utf-8"), self._secret)

    async def guard(
        self,
        credential: str | None,
        operation: Callable[[], Awaitable[T]],
        *,
        client: str | None = None,
    ) -> T:
        if not self.is_authorized(credential):
            structlog.get_logger("auth").warning("auth.rejected", client=client)
            raise UnauthorizedError(client)

        start = perf_counter()
        result = await operation()
        self.counter.record(perf_counter() - start)
        return result
