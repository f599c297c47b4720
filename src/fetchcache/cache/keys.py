"""Request normalization and reversible on-disk name encoding.

Every public cache operation accepts a :data:`RequestLike` and turns it
into an :class:`httpx.Request` with :func:`to_request` before doing
anything else. Entries are keyed by the request URL with its fragment
removed (:func:`normalize_url`).

Cache names and entry keys are stored as URL-safe base64 of their UTF-8
bytes, which never contains a path separator and decodes back exactly.
"""

from __future__ import annotations

import base64
import binascii
from typing import Union

import httpx

RequestLike = Union[str, httpx.URL, httpx.Request]


def to_request(value: RequestLike) -> httpx.Request:
    """Return *value* as an :class:`httpx.Request`, building a GET for URLs."""
    if isinstance(value, httpx.Request):
        return value
    if isinstance(value, (str, httpx.URL)):
        return httpx.Request("GET", value)
    raise TypeError(f"Expected a URL string, httpx.URL or httpx.Request, got {type(value).__name__}")


def strip_fragment(url: str) -> str:
    """Drop everything from the first ``#``."""
    return url.split("#", 1)[0]


def strip_search(url: str) -> str:
    """Drop the query string (and anything after it)."""
    return url.split("?", 1)[0]


def normalize_url(request: httpx.Request) -> str:
    """The entry key for *request*: its URL without the fragment.

    An empty path is spelled ``/``, so ``http://example.com`` and
    ``http://example.com/`` share one key.
    """
    url = request.url
    url = url.copy_with(raw_path=url.raw_path)
    return strip_fragment(str(url))


def urls_match(stored: str, query: str, ignore_search: bool = False) -> bool:
    """Compare a stored key with a normalized query URL."""
    if ignore_search:
        return strip_search(stored) == strip_search(query)
    return stored == query


def encode_name(text: str) -> str:
    """Encode a cache name or URL as a filesystem-safe file name."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def decode_name(name: str) -> str:
    """Invert :func:`encode_name`.

    Raises:
        ValueError: If *name* is not a canonical encoding produced by
            :func:`encode_name`.
    """
    try:
        text = base64.urlsafe_b64decode(name.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError) as exc:
        raise ValueError(f"Not an encoded name: {name!r}") from exc
    # urlsafe_b64decode silently skips stray characters.
    if encode_name(text) != name:
        raise ValueError(f"Not an encoded name: {name!r}")
    return text
