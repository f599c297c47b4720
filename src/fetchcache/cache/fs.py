"""Awaitable filesystem primitives used by the cache layer.

Blocking calls run on the default executor through :func:`asyncio.to_thread`
so the event loop stays responsive while entries are listed, read, or
written. Every :class:`OSError` is re-raised as
:class:`~fetchcache.exceptions.StorageError` with the original chained,
except where a missing path is reported as a plain negative result.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import IO, Any, Callable, Optional, TypeVar

from fetchcache.exceptions import StorageError

T = TypeVar("T")


async def _run(action: str, path: Path, func: Callable[..., T], *args: Any) -> T:
    try:
        return await asyncio.to_thread(func, *args)
    except OSError as exc:
        raise StorageError(f"Cannot {action} {path}: {exc}") from exc


async def make_dirs(path: Path) -> None:
    """Create *path* and its parents; an existing directory is left untouched."""
    await _run("create directory", path, lambda: path.mkdir(parents=True, exist_ok=True))


async def list_dir(path: Path, missing_ok: bool = False) -> list[str]:
    """Return the entry names of *path* in listing order.

    Hidden names (temp files written by :class:`AtomicFileWriter`) are
    skipped. With ``missing_ok`` a nonexistent directory yields ``[]``.
    """

    def _list() -> list[str]:
        try:
            names = os.listdir(path)
        except FileNotFoundError:
            if missing_ok:
                return []
            raise
        return [name for name in names if not name.startswith(".")]

    return await _run("list", path, _list)


async def is_dir(path: Path) -> bool:
    """Whether *path* exists and is a directory."""
    return await asyncio.to_thread(path.is_dir)


async def remove_tree(path: Path) -> None:
    """Recursively delete the directory *path*."""
    await _run("remove", path, shutil.rmtree, path)


async def remove_file(path: Path) -> bool:
    """Delete the file *path*, returning ``False`` if it did not exist."""

    def _unlink() -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    return await _run("remove", path, _unlink)


class AtomicFileWriter:
    """Write a file through a sibling temp file and rename it into place.

    Used as an async context manager. Chunks are written with :meth:`write`;
    on a clean exit the data is flushed, fsynced, and moved over *path* with
    ``os.replace``. Any exception (cancellation included) discards the temp
    file and leaves an existing *path* untouched.

    Example::

        async with AtomicFileWriter(entry_path) as writer:
            await writer.write(head)
            await writer.write(body)
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._fp: Optional[IO[bytes]] = None

    async def __aenter__(self) -> AtomicFileWriter:
        self._fp = await _run(
            "create temp file in",
            self._path.parent,
            lambda: tempfile.NamedTemporaryFile(
                mode="wb",
                dir=self._path.parent,
                prefix=f".{self._path.name[:32]}.",
                suffix=".tmp",
                delete=False,
            ),
        )
        return self

    async def write(self, data: bytes) -> None:
        assert self._fp is not None, "Writer not opened -- use as async context manager"
        if data:
            await _run("write", self._path, self._fp.write, data)

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if self._fp is None:
            return
        fp, self._fp = self._fp, None
        if exc_type is not None:
            _discard(fp)
            return
        try:
            await _run("flush", self._path, _commit, fp, self._path)
        except BaseException:
            _discard(fp)
            raise


def _commit(fp: IO[bytes], path: Path) -> None:
    fp.flush()
    os.fsync(fp.fileno())
    fp.close()
    os.replace(fp.name, path)


def _discard(fp: IO[bytes]) -> None:
    fp.close()
    try:
        os.unlink(fp.name)
    except OSError:
        pass
