"""Session state shared across requests and process runs.

:class:`CookieJar` persists the session cookies the gateway attaches to
outgoing requests and refreshes from ``Set-Cookie`` response headers.
"""

from cachegate.auth.cookie_jar import CookieJar, parse_cookie_header, parse_set_cookie

__all__ = ["CookieJar", "parse_cookie_header", "parse_set_cookie"]
