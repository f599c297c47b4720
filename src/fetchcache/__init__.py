"""fetchcache -- File-backed HTTP response caches with browser cache storage semantics.

This package stores :mod:`httpx` responses on disk in independently named
caches, each a directory of framed entry files keyed by request URL. The API
mirrors the browser ``caches`` / ``Cache`` objects: open a cache by name,
``put`` and ``match`` responses, and ``add`` URLs by fetching them.

Typical use::

    storage = CacheStorage.from_root("/var/cache/app")
    cache = await storage.open("v1")
    await cache.add("https://example.com/")
    response = await cache.match("https://example.com/")

The ``fetchcache`` command-line tool exposes the same operations.

Modules:
    cache: Registry, named caches, and the on-disk entry format.
    client: Default fetcher built on httpx.
    app: Typer application and CLI entry point.
    models: Pydantic models for configuration and query options.
    config: XDG-aware configuration and cache root resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
