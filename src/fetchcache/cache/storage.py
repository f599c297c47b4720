"""Registry of named caches under a single root directory.

:class:`CacheStorage` discovers caches by listing the subdirectories of its
root on every call; it keeps no index of its own. Directory names are the
URL-safe base64 encoding of the cache names.

A process-wide default instance, rooted at the configured cache root, is
available through :func:`get_storage`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Union

import httpx

from fetchcache.cache import fs
from fetchcache.cache.keys import RequestLike, decode_name, encode_name
from fetchcache.cache.named_cache import FetchFunc, NamedCache
from fetchcache.config import resolve_storage_config
from fetchcache.exceptions import ConfigError, ValidationError
from fetchcache.models import MultiCacheQueryOptions, StorageConfig
from fetchcache.output import debug


class CacheStorage:
    """Collection of :class:`NamedCache` instances sharing one root.

    Args:
        config: Storage settings; ``config.root`` must be set (see
            :func:`~fetchcache.config.resolve_storage_config`).
        fetch: Fetch coroutine handed to every opened cache for
            :meth:`NamedCache.add`.

    Raises:
        ConfigError: If ``config.root`` is unset.
    """

    def __init__(self, config: StorageConfig, fetch: Optional[FetchFunc] = None) -> None:
        if not config.root:
            raise ConfigError("Storage root is not configured")
        self._root = Path(config.root)
        self._fetch = fetch

    @classmethod
    def from_root(
        cls, root: Union[str, Path], fetch: Optional[FetchFunc] = None
    ) -> CacheStorage:
        """Build a storage rooted at *root*."""
        return cls(StorageConfig(root=str(root)), fetch=fetch)

    @property
    def root(self) -> Path:
        return self._root

    def __repr__(self) -> str:
        return f"CacheStorage(root={str(self._root)!r})"

    async def open(self, name: str) -> NamedCache:
        """Return the cache called *name*, creating its directory if needed.

        Opening an existing cache never touches its entries.

        Raises:
            ValidationError: If *name* is empty.
            StorageError: If the directory cannot be created.
        """
        directory = self._cache_dir(name)
        await fs.make_dirs(directory)
        debug(f"Opened cache '{name}' at {directory}")
        return NamedCache(name, directory, fetch=self._fetch)

    async def has(self, name: str) -> bool:
        """Whether a cache called *name* exists."""
        return name in await self.keys()

    async def delete(self, name: str) -> bool:
        """Remove the cache called *name* and all of its entries.

        Returns:
            ``True`` if the cache existed and was removed, ``False`` otherwise.
            An empty name never names a cache, so it yields ``False``.
        """
        if not name:
            return False
        directory = self._cache_dir(name)
        if not await fs.is_dir(directory):
            return False
        await fs.remove_tree(directory)
        debug(f"Deleted cache '{name}'")
        return True

    async def keys(self) -> list[str]:
        """Return the names of all caches in listing order.

        A missing root yields an empty list. Files, and directories whose
        names are not valid encodings, are skipped.
        """
        names = await fs.list_dir(self._root, missing_ok=True)
        flags = await asyncio.gather(*(fs.is_dir(self._root / name) for name in names))

        result = []
        for name, is_cache in zip(names, flags):
            if not is_cache:
                continue
            try:
                result.append(decode_name(name))
            except ValueError:
                debug(f"Ignoring foreign directory {name!r} under {self._root}")
        return result

    async def match(
        self,
        request: RequestLike,
        options: Optional[MultiCacheQueryOptions] = None,
    ) -> Optional[httpx.Response]:
        """Search the caches in listing order and return the first match.

        With ``options.cache_name`` set only that cache is searched; a
        missing cache yields ``None`` and is not created.
        """
        options = options or MultiCacheQueryOptions()
        if options.cache_name is not None:
            if not await self.has(options.cache_name):
                return None
            names = [options.cache_name]
        else:
            names = await self.keys()

        for name in names:
            cache = await self.open(name)
            response = await cache.match(request, options)
            if response is not None:
                return response
        return None

    def _cache_dir(self, name: str) -> Path:
        if not name:
            raise ValidationError("Cache name must not be empty")
        return self._root / encode_name(name)


# ------------------------------------------------------------------ #
# Global storage instance
# ------------------------------------------------------------------ #

_storage: Optional[CacheStorage] = None


def get_storage() -> CacheStorage:
    """Return the global :class:`CacheStorage`.

    Created lazily from :func:`~fetchcache.config.resolve_storage_config`
    when none has been installed with :func:`set_storage`.
    """
    global _storage
    if _storage is None:
        _storage = CacheStorage(resolve_storage_config())
    return _storage


def set_storage(storage: CacheStorage) -> None:
    """Install *storage* as the global :class:`CacheStorage`."""
    global _storage
    _storage = storage


def reset_storage() -> None:
    """Forget the global :class:`CacheStorage`; mainly for test isolation."""
    global _storage
    _storage = None
