"""HTTP fetching for fetchcache.

Provides :class:`Fetcher`, an async wrapper around :class:`httpx.AsyncClient`
that returns streaming responses ready to be stored, and :func:`fetch`, the
one-shot default used by :meth:`~fetchcache.cache.NamedCache.add`.

Example::

    from fetchcache.client import Fetcher

    async with Fetcher() as fetcher:
        resp = await fetcher(httpx.Request("GET", "https://example.com/"))
"""

from fetchcache.client.fetcher import Fetcher, fetch

__all__ = ["Fetcher", "fetch"]
