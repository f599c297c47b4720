"""Canonical Pydantic models shared across all fetchcache modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`StorageConfig`, :class:`FetchConfig`, :class:`OutputConfig`, and
    :class:`GlobalConfig`.

**Query models** -- options accepted by the cache matching operations:
    :class:`CacheQueryOptions` and :class:`MultiCacheQueryOptions`.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class StorageConfig(BaseModel):
    """Location of the cache root directory.

    ``root`` is ``None`` until resolved; :func:`~fetchcache.config.resolve_storage_config`
    fills it in from the precedence chain so that a constructed
    :class:`~fetchcache.cache.storage.CacheStorage` always has a concrete path.
    """

    root: Optional[str] = Field(
        default=None, description="Directory holding one subdirectory per named cache"
    )


class FetchConfig(BaseModel):
    """HTTP settings used by :class:`~fetchcache.client.Fetcher`."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    follow_redirects: bool = Field(default=True, description="Follow HTTP redirects")


class OutputConfig(BaseModel):
    """Default output format, used when neither ``--json`` nor ``--plain`` is given."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/fetchcache/config.json``.

    Loaded and saved by :func:`~fetchcache.config.load_global_config` and
    :func:`~fetchcache.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags.
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Query options ---


class CacheQueryOptions(BaseModel):
    """Options controlling how a request is compared with stored entries.

    Stored keys are always fragment-free GET URLs. ``ignore_search`` drops
    the query string from both the stored key and the request before
    comparing; ``ignore_method`` lets a non-GET request match.
    """

    model_config = ConfigDict(frozen=True)

    ignore_search: bool = False
    ignore_method: bool = False


class MultiCacheQueryOptions(CacheQueryOptions):
    """Query options for :meth:`~fetchcache.cache.storage.CacheStorage.match`.

    When ``cache_name`` is set only that cache is searched.
    """

    cache_name: Optional[str] = None
