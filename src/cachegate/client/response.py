"""Response decoding and error classification.

Bridges raw :class:`httpx.Response` objects and the exception taxonomy in
:mod:`cachegate.exceptions`:

* :func:`extract_response_data` decodes the body (JSON, else text).
* :func:`raise_for_response` maps error statuses to typed exceptions.
* :func:`check_envelope` rejects well-formed ``{"status": "FAILED"}``
  API envelopes, which arrive with HTTP 200.
* :func:`map_transport_error` wraps :mod:`httpx` request failures.
"""

from __future__ import annotations

from typing import Any

import httpx

from cachegate.exceptions import (
    AuthError,
    NotFoundError,
    ProtocolError,
    RateLimitedError,
    RemoteClientError,
    RemoteError,
    RemoteServerError,
    TransportError,
)


def extract_response_data(response: httpx.Response) -> Any:
    """Return the decoded body: JSON when it parses, raw text otherwise, ``None`` if empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(response: httpx.Response) -> str:
    try:
        detail = response.json()
    except ValueError:
        return response.text[:200] if response.text else ""
    if isinstance(detail, dict):
        return str(
            detail.get("comment")
            or detail.get("message")
            or detail.get("error")
            or detail.get("detail")
            or ""
        )
    return str(detail)


def raise_for_response(response: httpx.Response) -> None:
    """Raise a typed exception for an error HTTP status; return for < 400.

    The raised error carries an :class:`httpx.HTTPStatusError` for the
    response as its ``last_error``.
    """
    status = response.status_code
    if status < 400:
        return

    msg = _error_message(response)
    full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"
    cause = httpx.HTTPStatusError(full_msg, request=response.request, response=response)

    if status >= 500:
        raise RemoteServerError(full_msg, status_code=status, last_error=cause)
    if status in (401, 403):
        raise AuthError(full_msg, status_code=status, last_error=cause)
    if status == 404:
        raise NotFoundError(full_msg, status_code=status, last_error=cause)
    if status == 429:
        raise RateLimitedError(full_msg, status_code=status, last_error=cause)
    raise RemoteClientError(full_msg, status_code=status, last_error=cause)


def check_envelope(payload: Any, status_code: int = 200) -> None:
    """Raise :class:`RemoteClientError` for a ``FAILED`` API envelope."""
    if isinstance(payload, dict) and payload.get("status") == "FAILED":
        comment = payload.get("comment") or "API reported a failure"
        raise RemoteClientError(str(comment), status_code=status_code)


def map_transport_error(exc: httpx.RequestError) -> RemoteError:
    """Wrap an :mod:`httpx` request failure so the retry policy can classify it.

    Timeouts and connection failures become a retryable
    :class:`TransportError`. Anything else raised while sending or reading
    (an undecodable body, a redirect loop) becomes a non-retryable
    :class:`ProtocolError`.
    """
    if isinstance(exc, httpx.TimeoutException):
        return TransportError(f"Request timed out: {exc}", last_error=exc)
    if isinstance(exc, httpx.TransportError):
        return TransportError(f"Connection failed: {exc}", last_error=exc)
    if isinstance(exc, httpx.TooManyRedirects):
        return ProtocolError(f"Too many redirects: {exc}", last_error=exc)
    if isinstance(exc, httpx.DecodingError):
        return ProtocolError(f"Cannot decode response: {exc}", last_error=exc)
    return ProtocolError(f"Request failed: {exc}", last_error=exc)
