"""Exception hierarchy for cachegate.

All exceptions inherit from :class:`CacheGateError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`cachegate.exit_codes`.
The top-level error handler in :func:`cachegate.app.main` catches
``CacheGateError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    CacheGateError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- ConfigError              (exit 1)
    +-- CacheIOError             (never leaves the cache / cookie layer)
    +-- RemoteError              (exit 1)
        +-- TransportError       (exit 6, retryable)
        +-- ProtocolError        (exit 1)
        +-- RemoteServerError    (exit 5, retryable)
        +-- RemoteClientError    (exit 8)
            +-- AuthError        (exit 3)
            +-- NotFoundError    (exit 4)
            +-- RateLimitedError (exit 8, retryable only when configured)
"""

from __future__ import annotations

from typing import Optional

from cachegate.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CLIENT_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class CacheGateError(Exception):
    """Base exception for all cachegate errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`cachegate.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CacheGateError):
    """Raised for invalid CLI arguments or malformed parameter values."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(CacheGateError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheIOError(CacheGateError):
    """Raised by store backends when an entry cannot be read, written, or removed.

    The Entry Store and the Cookie Jar always recover from it locally by
    logging and treating the entry as absent, so callers of the gateway
    never see it.
    """


class RemoteError(CacheGateError):
    """Base class for failures of a request sent to the remote API.

    Attributes:
        status_code: HTTP status of the failing response, or ``None`` for
            transport-level failures.
        attempts: Number of attempts made before the error was surfaced.
        last_error: The underlying exception of the final attempt, if any.
        retryable: Whether the retry policy may try the request again.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        attempts: int = 1,
        last_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.attempts = attempts
        self.last_error = last_error

    def __str__(self) -> str:
        if self.attempts > 1:
            return f"{self.message} (after {self.attempts} attempts)"
        return self.message


class TransportError(RemoteError):
    """Raised on network-level failures (timeout, connection reset, DNS)."""

    exit_code = EXIT_CONNECTION_ERROR
    retryable = True


class ProtocolError(RemoteError):
    """Raised when a response cannot be decoded or its redirects never settle."""


class RemoteServerError(RemoteError):
    """Raised when the API answers with an HTTP 5xx status."""

    exit_code = EXIT_SERVER_ERROR
    retryable = True


class RemoteClientError(RemoteError):
    """Raised for HTTP 4xx responses and well-formed ``FAILED`` envelopes."""

    exit_code = EXIT_CLIENT_ERROR


class AuthError(RemoteClientError):
    """Raised when the API rejects the session (HTTP 401 / 403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(RemoteClientError):
    """Raised when the API returns HTTP 404."""

    exit_code = EXIT_NOT_FOUND


class RateLimitedError(RemoteClientError):
    """Raised when the API still throttles us (HTTP 429).

    Not retryable by default; see :attr:`~cachegate.models.RetryConfig.retry_on_429`.
    """
