"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~fetchcache.exceptions.FetchCacheError` subclass.
Shell scripts wrapping ``fetchcache`` can inspect the exit code to tell a
cache miss from a corrupt entry without parsing stderr.

Example::

    $ fetchcache match https://example.com/missing
    $ echo $?
    4   # EXIT_NOT_FOUND -- no cache holds a matching entry
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, or a request/response the cache refuses to store."""

EXIT_NOT_FOUND = 4
"""No cached entry matched the request."""

EXIT_STORAGE_ERROR = 5
"""A filesystem operation on the cache root failed."""

EXIT_DECODE_ERROR = 6
"""A cache entry file is corrupt and could not be decoded."""

EXIT_FETCH_ERROR = 7
"""A network fetch failed or returned a non-2xx status."""
