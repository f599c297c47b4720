"""A single named cache backed by one directory of entry files.

:class:`NamedCache` stores request/response pairs with the semantics of the
browser cache storage API. Each entry lives in its own file, named by the
encoded request URL (fragment removed), and framed by
:mod:`fetchcache.cache.codec`.

Handles are cheap: they only hold the directory path, and every call
re-reads the directory, so two handles for the same name always agree.

Example::

    cache = await storage.open("v1")
    await cache.put("https://example.com/", response)
    hit = await cache.match("https://example.com/#top")
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

import httpx

from fetchcache.cache import fs
from fetchcache.cache.codec import encode_head, header_pairs, read_entry, status_text
from fetchcache.cache.keys import (
    RequestLike,
    decode_name,
    encode_name,
    normalize_url,
    to_request,
    urls_match,
)
from fetchcache.client import fetch as default_fetch
from fetchcache.exceptions import (
    BodyAlreadyUsedError,
    FetchError,
    InvalidSchemeError,
    PartialResponseError,
    UnsupportedMethodError,
    VaryWildcardError,
)
from fetchcache.models import CacheQueryOptions
from fetchcache.output import debug

FetchFunc = Callable[[httpx.Request], Awaitable[httpx.Response]]

_SCHEMES = ("http", "https")


class NamedCache:
    """Request/response store rooted at one directory.

    Args:
        name: The cache name as given to
            :meth:`~fetchcache.cache.storage.CacheStorage.open`.
        directory: Directory holding this cache's entry files.
        fetch: Coroutine used by :meth:`add` and :meth:`add_all`. Defaults
            to :func:`fetchcache.client.fetch`.
    """

    def __init__(self, name: str, directory: Path, fetch: Optional[FetchFunc] = None) -> None:
        self._name = name
        self._directory = directory
        self._fetch = fetch

    @property
    def name(self) -> str:
        return self._name

    @property
    def directory(self) -> Path:
        return self._directory

    def __repr__(self) -> str:
        return f"NamedCache(name={self._name!r}, directory={str(self._directory)!r})"

    # ------------------------------------------------------------------ #
    # Writing
    # ------------------------------------------------------------------ #

    async def put(self, request: RequestLike, response: httpx.Response) -> None:
        """Store *response* as the entry for *request*, replacing any previous one.

        All validation happens before the filesystem is touched. The entry is
        written to a temp file and renamed into place once fsynced, so readers
        see either the old entry or the complete new one. An unread response
        body is streamed to disk and the response is closed afterwards.

        Raises:
            InvalidSchemeError: The URL scheme is not http or https.
            UnsupportedMethodError: The request method is not GET.
            PartialResponseError: The response status is 206.
            VaryWildcardError: A ``Vary`` header contains ``*``.
            BodyAlreadyUsedError: The body stream was consumed without
                being kept.
            StorageError: The entry could not be written.
        """
        req = to_request(request)
        _validate_request(req)
        _validate_response(response)

        try:
            content: Optional[bytes] = response.content
        except httpx.ResponseNotRead:
            if response.is_stream_consumed:
                raise BodyAlreadyUsedError() from None
            content = None

        headers = header_pairs(response.headers)
        if content is not None and "content-encoding" in response.headers:
            # httpx already decoded the body; describe the bytes we keep.
            headers = [
                (k, str(len(content)) if k.lower() == "content-length" else v)
                for k, v in headers
                if k.lower() != "content-encoding"
            ]

        key = normalize_url(req)
        path = self._entry_path(key)
        head = encode_head(response.status_code, status_text(response), headers)

        try:
            async with fs.AtomicFileWriter(path) as writer:
                await writer.write(head)
                if content is not None:
                    await writer.write(content)
                else:
                    try:
                        async for chunk in response.aiter_raw():
                            await writer.write(chunk)
                    except httpx.TransportError as exc:
                        raise FetchError(f"Failed reading body of {key}: {exc}") from exc
        finally:
            if content is None:
                await response.aclose()

        debug(f"Stored {key} in cache '{self._name}' ({response.status_code})")

    async def add(self, request: RequestLike) -> None:
        """Fetch *request* and store the response."""
        await self.add_all([request])

    async def add_all(self, requests: Iterable[RequestLike]) -> None:
        """Fetch every request concurrently and store all responses.

        Nothing is stored unless every fetch succeeds; the responses already
        received are closed and the first failure is raised. Stores then run
        concurrently; each one finishes before the first store failure, if
        any, is raised. Entries stored before a failure are kept.

        Raises:
            ValidationError: A request has an unsupported scheme or method,
                or a fetched response cannot be stored.
            FetchError: A fetch failed or returned a non-2xx status.
        """
        prepared = [to_request(request) for request in requests]
        for req in prepared:
            _validate_request(req)

        results = await asyncio.gather(
            *(self._fetch_one(req) for req in prepared), return_exceptions=True
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            await asyncio.gather(
                *(result.aclose() for result in results if isinstance(result, httpx.Response))
            )
            raise failures[0]

        responses: list[httpx.Response] = list(results)  # type: ignore[arg-type]
        try:
            outcomes = await asyncio.gather(
                *(self.put(req, resp) for req, resp in zip(prepared, responses)),
                return_exceptions=True,
            )
        finally:
            await asyncio.gather(*(resp.aclose() for resp in responses))
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

    async def _fetch_one(self, request: httpx.Request) -> httpx.Response:
        fetch = self._fetch or default_fetch
        clone = httpx.Request(request.method, request.url, headers=request.headers)
        response = await fetch(clone)
        if response.status_code == 206:
            await response.aclose()
            raise PartialResponseError()
        if not response.is_success:
            await response.aclose()
            raise FetchError(
                f"Fetching {request.url} returned HTTP {response.status_code} {response.reason_phrase}"
            )
        return response

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    async def match(
        self,
        request: RequestLike,
        options: Optional[CacheQueryOptions] = None,
    ) -> Optional[httpx.Response]:
        """Return the first stored response matching *request*, or ``None``."""
        for name, key in await self._select(request, options):
            return await read_entry(self._directory / name, key)
        return None

    async def match_all(
        self,
        request: Optional[RequestLike] = None,
        options: Optional[CacheQueryOptions] = None,
    ) -> list[httpx.Response]:
        """Return every stored response matching *request*, in listing order.

        Without a request all entries are returned. Each response holds its
        entry file open until the body is read or the response is closed.
        """
        responses: list[httpx.Response] = []
        try:
            for name, key in await self._select(request, options):
                responses.append(await read_entry(self._directory / name, key))
        except BaseException:
            for response in responses:
                await response.aclose()
            raise
        return responses

    async def keys(
        self,
        request: Optional[RequestLike] = None,
        options: Optional[CacheQueryOptions] = None,
    ) -> list[httpx.Request]:
        """Return the stored request keys as GET requests, optionally filtered."""
        return [httpx.Request("GET", key) for _, key in await self._select(request, options)]

    async def delete(
        self,
        request: RequestLike,
        options: Optional[CacheQueryOptions] = None,
    ) -> bool:
        """Remove every entry matching *request*.

        Returns:
            ``True`` if at least one entry file was removed.
        """
        removed = False
        for name, key in await self._select(request, options):
            if await fs.remove_file(self._directory / name):
                debug(f"Deleted {key} from cache '{self._name}'")
                removed = True
        return removed

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _entry_path(self, key: str) -> Path:
        return self._directory / encode_name(key)

    async def _select(
        self,
        request: Optional[RequestLike],
        options: Optional[CacheQueryOptions],
    ) -> list[tuple[str, str]]:
        """Return ``(file name, key)`` pairs of the entries matching *request*."""
        options = options or CacheQueryOptions()
        query: Optional[str] = None
        if request is not None:
            req = to_request(request)
            if req.method != "GET" and not options.ignore_method:
                return []
            query = normalize_url(req)

        selected = []
        for name in await fs.list_dir(self._directory):
            try:
                key = decode_name(name)
            except ValueError:
                debug(f"Ignoring foreign file {name!r} in cache '{self._name}'")
                continue
            if query is None or urls_match(key, query, options.ignore_search):
                selected.append((name, key))
        return selected


def _validate_request(request: httpx.Request) -> None:
    if request.url.scheme not in _SCHEMES:
        raise InvalidSchemeError(request.url.scheme or str(request.url).split(":", 1)[0])
    if request.method != "GET":
        raise UnsupportedMethodError(request.method)


def _validate_response(response: httpx.Response) -> None:
    if response.status_code == 206:
        raise PartialResponseError()
    for value in response.headers.get_list("vary", split_commas=True):
        if value.strip() == "*":
            raise VaryWildcardError()
