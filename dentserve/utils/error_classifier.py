"""Heuristic error classification.

Maps an exception to a coarse category so the caller can pick a fallback
response: network failures become 503, auth failures 401, and so on.
"""

from __future__ import annotations

from enum import Enum

import httpx


class ErrorCategory(str, Enum):
    NETWORK = "network"
    CHUNK_LOAD = "chunk_load"
    AUTHENTICATION = "auth"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    APPLICATION = "application"


_CHUNK_MARKERS = ("loading chunk", "loading css chunk", "chunkloaderror")
_NETWORK_MARKERS = ("fetch", "network", "timed out", "connection reset", "name or service not known")


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    if isinstance(response, httpx.Response):
        return response.status_code
    return None


def classify_error(exc: BaseException) -> ErrorCategory:
    """Classify an exception by type, status and message substrings.

    Order matters: chunk-load markers win over everything, then explicit
    auth statuses, then transport failures.

    Args:
        exc: Any exception.

    Returns:
        The matching ErrorCategory (APPLICATION when nothing matches).
    """
    message = str(exc).lower()
    status = _status_of(exc)

    if any(marker in message for marker in _CHUNK_MARKERS):
        return ErrorCategory.CHUNK_LOAD

    if status == 401 or "unauthorized" in message:
        return ErrorCategory.AUTHENTICATION

    if status == 403 or "forbidden" in message:
        return ErrorCategory.AUTHORIZATION

    if status == 404:
        return ErrorCategory.NOT_FOUND

    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK

    if any(marker in message for marker in _NETWORK_MARKERS):
        return ErrorCategory.NETWORK

    return ErrorCategory.APPLICATION
