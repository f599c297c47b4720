"""Cache commands -- inspect and manage caches from the shell.

Registers ``list``, ``keys``, ``match``, ``add`` and ``delete`` directly on
the root application. Each command resolves the cache root from the
``--root`` flag and the configuration precedence chain, then drives the
async :class:`~fetchcache.cache.CacheStorage` API with :func:`asyncio.run`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Optional, TypeVar

import httpx
import typer

from fetchcache.cache import CacheStorage
from fetchcache.client import Fetcher
from fetchcache.config import load_global_config, resolve_storage_config
from fetchcache.exit_codes import EXIT_NOT_FOUND
from fetchcache.models import CacheQueryOptions, MultiCacheQueryOptions
from fetchcache.output import (
    error,
    format_response,
    get_output,
    info,
    print_table,
    success,
)

T = TypeVar("T")


def _run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def _storage(ctx: typer.Context, fetcher: Optional[Fetcher] = None) -> CacheStorage:
    """Build the storage for this invocation from ``--root`` and config."""
    root = ctx.obj.get("root") if ctx.obj else None
    return CacheStorage(resolve_storage_config(cli_root=root), fetch=fetcher)


def _is_text(content_type: str) -> bool:
    return content_type.startswith("text/") or "json" in content_type or "xml" in content_type


def list_command(ctx: typer.Context) -> None:
    """List cache names.

    Example::

        fetchcache list
        fetchcache --json list
    """
    storage = _storage(ctx)
    names = _run(storage.keys())
    if not names:
        info(f"No caches under {storage.root}")
        return
    print_table(["name"], [[name] for name in names], title="Caches")


def keys_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
    url: Optional[str] = typer.Argument(None, help="Only show keys matching this URL."),
    ignore_search: bool = typer.Option(
        False, "--ignore-search", help="Ignore query strings when matching."
    ),
    ignore_method: bool = typer.Option(
        False, "--ignore-method", help="Match regardless of request method."
    ),
) -> None:
    """List the request URLs stored in a cache.

    Example::

        fetchcache keys v1
        fetchcache keys v1 "https://example.com/?page=2" --ignore-search
    """
    storage = _storage(ctx)
    options = CacheQueryOptions(ignore_search=ignore_search, ignore_method=ignore_method)

    async def _keys() -> Optional[list[httpx.Request]]:
        if not await storage.has(name):
            return None
        cache = await storage.open(name)
        return await cache.keys(url, options)

    requests = _run(_keys())
    if requests is None:
        error(f"Cache not found: {name}")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    print_table(["url"], [[str(request.url)] for request in requests], title=f"Keys in {name}")


def match_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="Request URL to look up."),
    cache_name: Optional[str] = typer.Option(
        None, "--cache", "-c", help="Only search this cache."
    ),
    ignore_search: bool = typer.Option(
        False, "--ignore-search", help="Ignore query strings when matching."
    ),
    show_headers: bool = typer.Option(
        False, "--headers", help="Print stored response headers to stderr."
    ),
) -> None:
    """Print a stored response body.

    Searches every cache in listing order (or only ``--cache``) and writes
    the first matching body to stdout. Exits with code 4 on a miss.

    Example::

        fetchcache match https://example.com/
        fetchcache match https://example.com/api --cache v1 --headers
    """
    storage = _storage(ctx)
    options = MultiCacheQueryOptions(cache_name=cache_name, ignore_search=ignore_search)

    async def _match() -> Optional[httpx.Response]:
        response = await storage.match(url, options)
        if response is not None:
            await response.aread()
        return response

    response = _run(_match())
    if response is None:
        error(f"No cached response for {url}")
        raise typer.Exit(code=EXIT_NOT_FOUND)

    info(f"HTTP {response.status_code} {response.reason_phrase}")
    if show_headers:
        for key, value in response.headers.multi_items():
            info(f"{key}: {value}")

    content_type = response.headers.get("content-type", "")
    if _is_text(content_type):
        format_response(response.text, content_type)
    else:
        get_output().write_bytes(response.content)


def add_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
    urls: list[str] = typer.Argument(help="URLs to fetch and store."),
) -> None:
    """Fetch URLs and store the responses in a cache.

    Nothing is stored unless every fetch succeeds.

    Example::

        fetchcache add v1 https://example.com/ https://example.com/app.js
    """
    fetch_config = load_global_config().fetch

    async def _add() -> None:
        async with Fetcher(fetch_config) as fetcher:
            cache = await _storage(ctx, fetcher).open(name)
            await cache.add_all(urls)

    _run(_add())
    success(f"Stored {len(urls)} response(s) in '{name}'")


def delete_command(
    ctx: typer.Context,
    name: str = typer.Argument(help="Cache name."),
    url: Optional[str] = typer.Argument(None, help="Only delete entries matching this URL."),
    ignore_search: bool = typer.Option(
        False, "--ignore-search", help="Ignore query strings when matching."
    ),
) -> None:
    """Delete a whole cache, or the entries matching a URL.

    Asks for confirmation unless ``--force`` is active.

    Example::

        fetchcache delete v1
        fetchcache --force delete v1 https://example.com/
    """
    storage = _storage(ctx)
    force = ctx.obj.get("force", False) if ctx.obj else False

    target = f"entries for {url} in cache '{name}'" if url else f"cache '{name}'"
    if not force:
        confirmed = typer.confirm(f"Delete {target}?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    async def _delete() -> bool:
        if url is None:
            return await storage.delete(name)
        if not await storage.has(name):
            return False
        cache = await storage.open(name)
        return await cache.delete(url, CacheQueryOptions(ignore_search=ignore_search))

    if not _run(_delete()):
        error(f"Nothing to delete: {target} not found")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    success(f"Deleted {target}")
