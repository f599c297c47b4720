"""Exception hierarchy for fetchcache.

All exceptions inherit from :class:`FetchCacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`fetchcache.exit_codes`.
The top-level error handler in :func:`fetchcache.app.main` catches
``FetchCacheError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    FetchCacheError (exit 1)
    +-- ValidationError            (exit 2)
    |   +-- InvalidSchemeError
    |   +-- UnsupportedMethodError
    |   +-- PartialResponseError
    |   +-- VaryWildcardError
    |   +-- BodyAlreadyUsedError
    +-- StorageError               (exit 5)
    +-- DecodeError                (exit 6)
    +-- FetchError                 (exit 7)
    +-- ConfigError                (exit 1)
"""

from fetchcache.exit_codes import (
    EXIT_DECODE_ERROR,
    EXIT_FETCH_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STORAGE_ERROR,
)


class FetchCacheError(Exception):
    """Base exception for all fetchcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`fetchcache.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ValidationError(FetchCacheError):
    """Raised when a request/response pair cannot be stored.

    Always raised before any filesystem or network I/O takes place.
    """

    exit_code = EXIT_INVALID_USAGE


class InvalidSchemeError(ValidationError):
    """Raised when the request URL scheme is neither ``http`` nor ``https``."""

    def __init__(self, scheme: str):
        super().__init__(f"Request scheme '{scheme}' is unsupported")
        self.scheme = scheme


class UnsupportedMethodError(ValidationError):
    """Raised when the request method is not ``GET``."""

    def __init__(self, method: str):
        super().__init__(f"Request method '{method}' is unsupported")
        self.method = method


class PartialResponseError(ValidationError):
    """Raised for ``206 Partial Content`` responses."""

    def __init__(self):
        super().__init__("Partial response (status code 206) is unsupported")


class VaryWildcardError(ValidationError):
    """Raised when the response ``Vary`` header contains ``*``."""

    def __init__(self):
        super().__init__("Vary header contains *")


class BodyAlreadyUsedError(ValidationError):
    """Raised when the response body stream was consumed without being read."""

    def __init__(self):
        super().__init__("Response body is already used")


class StorageError(FetchCacheError):
    """Raised when a filesystem operation under the cache root fails."""

    exit_code = EXIT_STORAGE_ERROR


class DecodeError(FetchCacheError):
    """Raised when an entry file has a malformed length prefix or header."""

    exit_code = EXIT_DECODE_ERROR


class FetchError(FetchCacheError):
    """Raised when ``add``/``add_all`` cannot fetch a response worth storing."""

    exit_code = EXIT_FETCH_ERROR


class ConfigError(FetchCacheError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE
