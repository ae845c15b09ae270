"""Outbound fetch for the relay endpoint.

Every call produces exactly one ``FetchResult``: transport failures (DNS,
connect, TLS, timeout, malformed request) are shaped into a result with
``status_code == 0`` and a non-empty ``status_message`` instead of being raised.
Upstream 4xx/5xx responses are relayed as successes.
"""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from urllib.parse import urlsplit

import httpx

from egress_relay.models.schemas import FetchRequest, FetchResult
from egress_relay.relay.headers import from_response_headers, to_outbound_headers

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_REDIRECTS = 10
# Codings the client asks for itself and undoes before the body is relayed.
DEFAULT_ACCEPT_ENCODING = "gzip, deflate"
_DECODED_CODINGS = {"gzip", "x-gzip", "deflate"}
_ALLOWED_SCHEMES = {"http", "https"}

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Base class for failures while building or sending the outbound GET."""


class InvalidURLError(RelayError):
    def __init__(self, url: str) -> None:
        super().__init__(f"unsupported or malformed URL: {url!r}")


class FetchTimeoutError(RelayError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"no response within {timeout:g} seconds")


def _validate_url(url: str) -> str:
    try:
        parsed = urlsplit(url)
    except ValueError as exc:
        raise InvalidURLError(url) from exc
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES or not parsed.hostname:
        raise InvalidURLError(url)
    return url


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _requests_coding(request: FetchRequest) -> bool:
    return any(key.lower() == "accept-encoding" and values for key, values in request.headers.items())


def _was_decoded(response: httpx.Response) -> bool:
    codings = [
        coding.strip().lower()
        for value in response.headers.get_list("content-encoding")
        for coding in value.split(",")
        if coding.strip()
    ]
    return bool(codings) and all(coding in _DECODED_CODINGS for coding in codings)


class RelayEngine:
    """Performs single-attempt GETs through one shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            max_redirects=max_redirects,
            transport=transport,
            headers={"Accept-Encoding": DEFAULT_ACCEPT_ENCODING},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _build_request(self, request: FetchRequest) -> httpx.Request:
        url = _validate_url(request.url)
        try:
            return self._client.build_request("GET", url, headers=to_outbound_headers(request.headers))
        except (httpx.InvalidURL, ValueError) as exc:
            raise RelayError(_describe(exc)) from exc

    async def _fetch(self, outbound: httpx.Request, *, raw: bool) -> tuple[httpx.Response, bytes]:
        response = await self._client.send(outbound, stream=True)
        try:
            if raw and not response.is_stream_consumed:
                content = b"".join([part async for part in response.aiter_raw()])
            else:
                content = await response.aread()
        finally:
            await response.aclose()
        return response, content

    async def _send(self, outbound: httpx.Request, *, raw: bool) -> tuple[httpx.Response, bytes]:
        try:
            return await asyncio.wait_for(self._fetch(outbound, raw=raw), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise FetchTimeoutError(self.timeout) from exc
        except httpx.HTTPError as exc:
            raise RelayError(_describe(exc)) from exc

    async def relay(self, request: FetchRequest) -> FetchResult:
        start = perf_counter()
        # A caller that negotiates its own coding gets the upstream bytes untouched.
        raw = _requests_coding(request)
        try:
            outbound = self._build_request(request)
            response, content = await self._send(outbound, raw=raw)
        except RelayError as exc:
            message = f'GET "{request.url}": {exc}'
            logger.warning("relay.fetch_failed", extra={"url": request.url, "error": message})
            return FetchResult.failure(request.url, message)

        if raw:
            body = content.decode(response.encoding or "utf-8", errors="replace")
        else:
            body = response.text
        result = FetchResult(
            url=request.url,
            status_code=response.status_code,
            headers=from_response_headers(response.headers, decoded=not raw and _was_decoded(response)),
            body=body,
            status_message="",
        )
        logger.debug(
            "relay.fetched",
            extra={
                "url": request.url,
                "status_code": response.status_code,
                "elapsed_ms": round((perf_counter() - start) * 1000.0, 2),
            },
        )
        return result
