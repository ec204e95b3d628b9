"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~cachegate.exceptions.CacheGateError` subclass.
Shell wrappers can inspect the exit code to tell a rejected request from
an unreachable server without parsing stderr.

Example::

    $ cachegate get /user.info -P handles=nobody
    $ echo $?
    8   # EXIT_CLIENT_ERROR -- the API rejected the request
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration values."""

EXIT_AUTH_FAILURE = 3
"""The remote API rejected the session (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API kept returning HTTP 5xx after all retries."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error persisted after all retries (timeout, reset, DNS)."""

EXIT_CLIENT_ERROR = 8
"""The remote API rejected the request (other 4xx or a FAILED envelope)."""
