"""Binary framing for cache entry files.

Each entry file holds one response::

    bytes[0..4)    little-endian uint32 L
    bytes[4..4+L)  UTF-8 JSON {"headers": [[k, v], ...], "status": N, "statusText": "..."}
    bytes[4+L..)   raw response body (possibly empty)

Header pairs keep their original order and repetitions, so headers such
as ``Set-Cookie`` or ``Vary`` survive a round trip. Header names and values
and the status text are the wire bytes mapped one-to-one onto latin-1
characters, which keeps any byte sequence intact whatever its charset.
The body is never loaded eagerly: :func:`read_entry` hands back an
:class:`httpx.Response` whose stream reads the open file in chunks.
"""

from __future__ import annotations

import asyncio
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import IO, AsyncIterator, Iterable

import httpx
import pydantic
from pydantic import BaseModel, ConfigDict, Field

from fetchcache.exceptions import DecodeError, StorageError

CHUNK_SIZE = 64 * 1024

_LENGTH = struct.Struct("<I")


class _StoredHead(BaseModel):
    """JSON shape of the metadata block."""

    model_config = ConfigDict(populate_by_name=True)

    headers: list[tuple[str, str]]
    status: int
    status_text: str = Field(alias="statusText")


@dataclass
class EntryHead:
    """Decoded metadata of an entry file."""

    status: int
    status_text: str
    headers: httpx.Headers
    body_offset: int
    reason_phrase: bytes


def header_pairs(headers: httpx.Headers) -> list[tuple[str, str]]:
    """Return *headers* as ``(name, value)`` pairs with their original casing."""
    return [(key.decode("latin-1"), value.decode("latin-1")) for key, value in headers.raw]


def status_text(response: httpx.Response) -> str:
    """Return the reason phrase of *response* in the stored form."""
    raw = response.extensions.get("reason_phrase")
    if isinstance(raw, bytes):
        return raw.decode("latin-1")
    return response.reason_phrase


def encode_head(status: int, status_text: str, headers: Iterable[tuple[str, str]]) -> bytes:
    """Serialise the length prefix and metadata block of an entry."""
    head = _StoredHead(headers=list(headers), status=status, status_text=status_text)
    payload = head.model_dump_json(by_alias=True).encode("utf-8")
    return _LENGTH.pack(len(payload)) + payload


def decode_head(fp: IO[bytes]) -> EntryHead:
    """Read the length prefix and metadata block from the start of *fp*.

    On return *fp* is positioned at the first body byte.

    Raises:
        DecodeError: If the prefix is truncated, the length runs past the
            end of the file, or the metadata is not the expected JSON object.
    """
    name = getattr(fp, "name", "<entry>")
    prefix = fp.read(_LENGTH.size)
    if len(prefix) != _LENGTH.size:
        raise DecodeError(f"Truncated length prefix in {name}")
    (length,) = _LENGTH.unpack(prefix)

    payload = fp.read(length)
    if len(payload) != length:
        raise DecodeError(
            f"Header length {length} runs past the end of {name} ({len(payload)} bytes left)"
        )
    try:
        head = _StoredHead.model_validate_json(payload)
    except pydantic.ValidationError as exc:
        raise DecodeError(f"Malformed entry header in {name}: {exc}") from exc

    try:
        raw_headers = [(k.encode("latin-1"), v.encode("latin-1")) for k, v in head.headers]
        reason_phrase = head.status_text.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise DecodeError(f"Malformed entry header in {name}: {exc}") from exc

    return EntryHead(
        status=head.status,
        status_text=head.status_text,
        headers=httpx.Headers(raw_headers),
        body_offset=_LENGTH.size + length,
        reason_phrase=reason_phrase,
    )


class EntryBodyStream(httpx.AsyncByteStream):
    """Async body stream over an open entry file positioned at the body.

    The stream owns *fp* and closes it when exhausted or on :meth:`aclose`.
    Holding the descriptor keeps the bytes readable even if a later ``put``
    replaces the entry file.
    """

    def __init__(self, fp: IO[bytes], chunk_size: int = CHUNK_SIZE) -> None:
        self._fp = fp
        self._chunk_size = chunk_size

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            while True:
                try:
                    chunk = await asyncio.to_thread(self._fp.read, self._chunk_size)
                except (OSError, ValueError) as exc:
                    raise StorageError(f"Cannot read body of {self._fp.name}: {exc}") from exc
                if not chunk:
                    break
                yield chunk
        finally:
            self._fp.close()

    async def aclose(self) -> None:
        self._fp.close()


def _open_entry(path: Path) -> tuple[IO[bytes], EntryHead]:
    fp = open(path, "rb")
    try:
        return fp, decode_head(fp)
    except BaseException:
        fp.close()
        raise


async def read_entry(path: Path, url: str) -> httpx.Response:
    """Rebuild the stored response for the entry at *path*.

    The response's request is a GET for *url* (the entry key), so
    ``response.url`` reports the key. The status text travels in the
    ``reason_phrase`` extension that :attr:`httpx.Response.reason_phrase`
    reads.

    Raises:
        DecodeError: If the entry file is corrupt.
        StorageError: If the file cannot be opened.
    """
    try:
        fp, head = await asyncio.to_thread(_open_entry, path)
    except OSError as exc:
        raise StorageError(f"Cannot read {path}: {exc}") from exc

    return httpx.Response(
        status_code=head.status,
        headers=head.headers,
        stream=EntryBodyStream(fp),
        request=httpx.Request("GET", url),
        extensions={"reason_phrase": head.reason_phrase},
    )
