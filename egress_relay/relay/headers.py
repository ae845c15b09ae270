"""Conversions between the JSON header multimap and httpx headers."""

from __future__ import annotations

import string
from collections.abc import Mapping, Sequence

import httpx

_TOKEN_CHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")
_ENTITY_CODING_HEADERS = frozenset({"Content-Encoding", "Content-Length"})


def canonical_header_key(key: str) -> str:
    """Return the MIME canonical form of ``key`` (``x-test`` -> ``X-Test``).

    Keys holding characters outside the HTTP token set are returned unchanged.
    """

    if not key or any(char not in _TOKEN_CHARS for char in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


def to_outbound_headers(mapping: Mapping[str, Sequence[str]]) -> list[tuple[str, str]]:
    """Flatten a header multimap into pairs, one per value, in mapping order."""

    pairs: list[tuple[str, str]] = []
    for key, values in mapping.items():
        for value in values:
            pairs.append((key, value))
    return pairs


def from_response_headers(headers: httpx.Headers, *, decoded: bool = False) -> dict[str, list[str]]:
    """Group raw upstream header lines by canonical key, keeping arrival order.

    When the body was decompressed on the way through, the upstream's
    ``Content-Encoding`` and ``Content-Length`` no longer describe it and are dropped.
    """

    grouped: dict[str, list[str]] = {}
    encoding = headers.encoding
    for raw_key, raw_value in headers.raw:
        key = canonical_header_key(raw_key.decode(encoding))
        if decoded and key in _ENTITY_CODING_HEADERS:
            continue
        grouped.setdefault(key, []).append(raw_value.decode(encoding))
    return grouped
