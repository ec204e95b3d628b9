"""Tests for response decoding and error classification."""

from __future__ import annotations

import httpx
import pytest

from cachegate.client.response import (
    check_envelope,
    extract_response_data,
    map_transport_error,
    raise_for_response,
)
from cachegate.exceptions import (
    AuthError,
    NotFoundError,
    ProtocolError,
    RateLimitedError,
    RemoteClientError,
    RemoteServerError,
    TransportError,
)


def _response(status: int, **kwargs) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("GET", "https://api.test/x"), **kwargs)


class TestExtract:
    def test_json(self) -> None:
        assert extract_response_data(_response(200, json={"a": 1})) == {"a": 1}

    def test_text(self) -> None:
        assert extract_response_data(_response(200, text="plain")) == "plain"

    def test_empty(self) -> None:
        assert extract_response_data(_response(204)) is None


class TestRaiseForResponse:
    @pytest.mark.parametrize(
        ("status", "exc_type"),
        [
            (500, RemoteServerError),
            (503, RemoteServerError),
            (401, AuthError),
            (403, AuthError),
            (404, NotFoundError),
            (429, RateLimitedError),
            (400, RemoteClientError),
        ],
    )
    def test_status_mapping(self, status: int, exc_type: type) -> None:
        with pytest.raises(exc_type) as exc_info:
            raise_for_response(_response(status))
        assert exc_info.value.status_code == status
        cause = exc_info.value.last_error
        assert isinstance(cause, httpx.HTTPStatusError)
        assert cause.response.status_code == status

    def test_success_does_not_raise(self) -> None:
        raise_for_response(_response(200))
        raise_for_response(_response(302))

    def test_comment_is_used_as_message(self) -> None:
        resp = _response(400, json={"status": "FAILED", "comment": "handles: bad"})
        with pytest.raises(RemoteClientError, match="HTTP 400: handles: bad"):
            raise_for_response(resp)

    def test_server_errors_are_retryable(self) -> None:
        with pytest.raises(RemoteServerError) as exc_info:
            raise_for_response(_response(502, text="bad gateway"))
        assert exc_info.value.retryable is True


class TestEnvelope:
    def test_failed_envelope_raises(self) -> None:
        with pytest.raises(RemoteClientError, match="contestId: not found") as exc_info:
            check_envelope({"status": "FAILED", "comment": "contestId: not found"})
        assert exc_info.value.retryable is False

    def test_ok_envelope_passes(self) -> None:
        check_envelope({"status": "OK", "result": []})

    @pytest.mark.parametrize("payload", [None, "text", [1, 2], {"result": 1}])
    def test_other_payloads_pass(self, payload) -> None:
        check_envelope(payload)


class TestTransport:
    def test_timeout(self) -> None:
        err = map_transport_error(httpx.ReadTimeout("slow"))
        assert isinstance(err, TransportError)
        assert "timed out" in str(err)
        assert err.retryable is True

    def test_connection(self) -> None:
        cause = httpx.ConnectError("refused")
        err = map_transport_error(cause)
        assert "Connection failed" in str(err)
        assert err.last_error is cause

    def test_redirect_loop_is_not_retryable(self) -> None:
        request = httpx.Request("GET", "https://api.test/loop")
        cause = httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)
        err = map_transport_error(cause)
        assert isinstance(err, ProtocolError)
        assert not isinstance(err, TransportError)
        assert err.retryable is False
        assert err.last_error is cause
        assert "Too many redirects" in str(err)

    def test_bad_content_encoding_is_not_retryable(self) -> None:
        err = map_transport_error(httpx.DecodingError("Error -3 while decompressing data"))
        assert isinstance(err, ProtocolError)
        assert err.retryable is False
        assert "Cannot decode response" in str(err)
