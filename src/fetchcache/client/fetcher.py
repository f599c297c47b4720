"""Default fetch primitive used by :meth:`NamedCache.add`.

:class:`Fetcher` wraps :class:`httpx.AsyncClient` configured from a
:class:`~fetchcache.models.FetchConfig`. Requests are sent with
``stream=True`` so the body is left unread and a following ``put`` stores
the bytes exactly as they came off the wire.
"""

from __future__ import annotations

from typing import Optional

import httpx

from fetchcache.exceptions import FetchError
from fetchcache.models import FetchConfig
from fetchcache.output import get_output


class Fetcher:
    """Async HTTP fetcher returning unread, streaming responses.

    Must be used as an async context manager. Responses must be read or
    closed before the context exits, since they share its connection pool.

    Args:
        config: Timeout, SSL verification and redirect settings. Defaults
            to :class:`~fetchcache.models.FetchConfig` defaults.
        transport: Optional transport override, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        async with Fetcher(config) as fetcher:
            await cache.put(request, await fetcher(request))
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or FetchConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> Fetcher:
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=self._config.follow_redirects,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        """Send *request* and return the response with its body unread.

        Raises:
            FetchError: On connection, timeout or other transport errors.
        """
        assert self._client is not None, "Fetcher not initialised -- use as async context manager"

        output = get_output()
        output.debug(f"Fetching {request.method} {request.url}")
        try:
            response = await self._client.send(request, stream=True)
        except httpx.TransportError as exc:
            raise FetchError(f"Connection failed for {request.url}: {exc}") from exc
        output.debug(f"{request.method} {request.url} -> {response.status_code}")
        return response


async def fetch(
    request: httpx.Request,
    config: Optional[FetchConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.Response:
    """Fetch *request* with a one-shot client and return the fully read response."""
    async with Fetcher(config, transport=transport) as fetcher:
        response = await fetcher(request)
        try:
            await response.aread()
        except httpx.TransportError as exc:
            raise FetchError(f"Failed reading body of {request.url}: {exc}") from exc
        finally:
            await response.aclose()
    return response
