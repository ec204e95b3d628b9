"""Composition root: cache-first reads over a throttled, retrying HTTP client.

:class:`Gateway` owns one instance each of the
:class:`~cachegate.cache.store.EntryStore`,
:class:`~cachegate.auth.cookie_jar.CookieJar`,
:class:`~cachegate.client.dispatcher.RateLimitedDispatcher` and
:class:`~cachegate.client.retry.RetryPolicy`, and wraps
:class:`httpx.AsyncClient`.

Request flow::

    get(url, params)
      +-- live cache entry?  -> return it
      +-- dispatcher.submit( retry.run( send ) )
            send: attach Cookie -> HTTP -> classify -> absorb Set-Cookie
      +-- entries.put(result) -> return it

Entry Store reads and writes (and the sweep that follows each write) run
in a worker thread through :func:`asyncio.to_thread`, off the event loop.

``post`` takes the same network path but never touches the cache.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx

from cachegate.auth.cookie_jar import CookieJar
from cachegate.cache.backends import create_store
from cachegate.cache.store import EntryStore, make_request_key
from cachegate.client.dispatcher import RateLimitedDispatcher
from cachegate.client.response import (
    check_envelope,
    extract_response_data,
    map_transport_error,
    raise_for_response,
)
from cachegate.client.retry import RetryPolicy
from cachegate.config import resolve_cookie_path
from cachegate.models import GatewayConfig
from cachegate.output import get_output

_MISSING = object()


class Gateway:
    """Cache-first, rate-limited, retrying access to a remote HTTP API.

    Must be used as an async context manager so that the underlying
    :class:`httpx.AsyncClient` is opened and closed.

    Args:
        config: Effective configuration (see :func:`~cachegate.config.resolve_config`).
        entries: Entry Store to use; built from ``config.cache`` when ``None``.
        cookie_jar: Cookie jar to use; loaded from the configured cookie
            file when ``None``.
        transport: Optional :mod:`httpx` transport (e.g.
            :class:`httpx.MockTransport` in tests).
        sleep: Awaitable sleep shared by the dispatcher and the retry
            policy.

    Example::

        async with Gateway(resolve_config()) as gateway:
            users = await gateway.get("/user.info", {"handles": "tourist"})
            await gateway.post("/submit", {"source": code})
    """

    def __init__(
        self,
        config: GatewayConfig,
        entries: Optional[EntryStore] = None,
        cookie_jar: Optional[CookieJar] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._entries = entries if entries is not None else EntryStore(
            create_store(config), config.cache
        )
        self._cookie_jar = cookie_jar if cookie_jar is not None else CookieJar(
            resolve_cookie_path(config)
        )
        self._dispatcher = RateLimitedDispatcher(config.rate_limit, sleep=sleep)
        self._retry = RetryPolicy(config.retry, sleep=sleep)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Gateway:
        request = self._config.request
        self._client = httpx.AsyncClient(
            base_url=request.base_url,
            timeout=request.timeout,
            verify=request.verify_ssl,
            follow_redirects=True,
            headers={"User-Agent": request.user_agent, "Accept": "application/json"},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel queued requests and release the HTTP client and cache store."""
        await self._dispatcher.aclose()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._entries.close()

    # ------------------------------------------------------------------ #
    # Components
    # ------------------------------------------------------------------ #

    @property
    def entries(self) -> EntryStore:
        return self._entries

    @property
    def cookie_jar(self) -> CookieJar:
        return self._cookie_jar

    @property
    def dispatcher(self) -> RateLimitedDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def get(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        *,
        ttl: Optional[float] = None,
        bypass_cache: bool = False,
    ) -> Any:
        """Return the payload for ``GET url?params``, from cache when possible.

        Args:
            url: Path relative to ``request.base_url``, or an absolute URL.
            params: Query parameters; their order does not affect caching.
            ttl: Lifetime of the stored result in seconds; defaults to
                ``cache.ttl_seconds``.
            bypass_cache: Skip the cache lookup. The fresh result is still
                stored.

        Raises:
            RemoteClientError: On 4xx or a ``FAILED`` envelope.
            RemoteServerError: On 5xx after all retries.
            TransportError: On timeouts / connection errors after all retries.
            ProtocolError: When the body cannot be decoded or redirects loop.
        """
        key = self.cache_key("GET", url, params)
        caching = self._entries.enabled
        if caching and not bypass_cache:
            cached = await asyncio.to_thread(self._entries.get, key, _MISSING)
            if cached is not _MISSING:
                get_output().debug(f"Cache hit: GET {url}")
                return cached

        payload = await self._dispatch("GET", url, params=params)
        if caching:
            await asyncio.to_thread(self._entries.put, key, payload, ttl)
        return payload

    async def post(self, url: str, body: Any = None, *, form: bool = False) -> Any:
        """Send a POST through the dispatcher and retry policy, bypassing the cache.

        Args:
            url: Path relative to ``request.base_url``, or an absolute URL.
            body: JSON-serialisable body, or a mapping when ``form`` is set.
            form: Send *body* as ``application/x-www-form-urlencoded``.
        """
        return await self._dispatch("POST", url, body=body, form=form)

    def cache_key(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
    ) -> str:
        """Return the canonical logical cache key for a request."""
        return make_request_key(method, self._full_url(url), params)

    def invalidate(self, url: str, params: Optional[dict[str, Any]] = None) -> None:
        """Drop the cached result of ``GET url?params``."""
        self._entries.delete(self.cache_key("GET", url, params))

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _full_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        base = self._config.request.base_url.rstrip("/")
        return f"{base}/{url.lstrip('/')}"

    async def _dispatch(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        body: Any = None,
        form: bool = False,
    ) -> Any:
        async def attempt() -> Any:
            return await self._send(method, url, params, body, form)

        return await self._dispatcher.submit(lambda: self._retry.run(attempt))

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]],
        body: Any,
        form: bool,
    ) -> Any:
        """Perform one HTTP attempt and return the decoded payload."""
        client = self._client
        if client is None:
            raise RuntimeError("Gateway not initialised -- use as async context manager")

        headers: dict[str, str] = {}
        cookie_header = self._cookie_jar.as_header_value()
        if cookie_header:
            headers["Cookie"] = cookie_header

        kwargs: dict[str, Any] = {"method": method, "url": url, "headers": headers}
        if params:
            kwargs["params"] = params
        if body is not None:
            kwargs["data" if form else "json"] = body

        get_output().debug(f"{method} {self._full_url(url)}")
        try:
            response = await client.request(**kwargs)
        except httpx.RequestError as exc:
            raise map_transport_error(exc) from exc
        finally:
            # Session cookies are owned by the jar, not by httpx.
            client.cookies.clear()

        raise_for_response(response)
        payload = extract_response_data(response)
        check_envelope(payload, response.status_code)
        self._cookie_jar.update(
            {c.name: c.value for c in response.cookies.jar if c.value is not None}
        )
        return payload
