"""File-backed HTTP response caches.

This package provides :class:`CacheStorage`, a registry of independently
named caches under one root directory, and :class:`NamedCache`, which
stores request/response pairs as one framed file per URL. Both mirror the
browser cache storage API with :mod:`httpx` message types.
"""

from fetchcache.cache.named_cache import NamedCache
from fetchcache.cache.storage import CacheStorage, get_storage, reset_storage, set_storage

__all__ = ["CacheStorage", "NamedCache", "get_storage", "reset_storage", "set_storage"]
