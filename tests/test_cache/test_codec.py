"""Tests for the entry file framing."""

from __future__ import annotations

import io
import json
import struct
from pathlib import Path

import httpx
import pytest

from fetchcache.cache.codec import decode_head, encode_head, header_pairs, read_entry
from fetchcache.exceptions import DecodeError


def _frame(payload: bytes, body: bytes = b"") -> bytes:
    return struct.pack("<I", len(payload)) + payload + body


# ------------------------------------------------------------------ #
# Head encoding
# ------------------------------------------------------------------ #


class TestEncodeHead:
    def test_prefix_is_little_endian_length(self) -> None:
        """The first four bytes hold the JSON length, little-endian."""
        head = encode_head(200, "OK", [("content-type", "text/plain")])
        (length,) = struct.unpack("<I", head[:4])
        assert length == len(head) - 4

    def test_json_layout(self) -> None:
        """The metadata block uses the headers/status/statusText keys."""
        head = encode_head(404, "Not Found", [("a", "1"), ("a", "2")])
        meta = json.loads(head[4:].decode("utf-8"))
        assert meta == {"headers": [["a", "1"], ["a", "2"]], "status": 404, "statusText": "Not Found"}

    def test_length_counts_utf8_bytes(self) -> None:
        """Non-ASCII header values are measured in encoded bytes."""
        head = encode_head(200, "OK", [("x-title", "café")])
        (length,) = struct.unpack("<I", head[:4])
        assert length == len(head[4:])
        assert "café" in head[4:].decode("utf-8")


# ------------------------------------------------------------------ #
# Head decoding
# ------------------------------------------------------------------ #


class TestDecodeHead:
    def test_decode_round_trip(self) -> None:
        """Decoding restores status, status text and ordered headers."""
        pairs = [("Set-Cookie", "a=1"), ("Content-Type", "text/html"), ("Set-Cookie", "b=2")]
        fp = io.BytesIO(encode_head(201, "Created", pairs) + b"body")
        head = decode_head(fp)
        assert head.status == 201
        assert head.status_text == "Created"
        assert head.headers.get_list("set-cookie") == ["a=1", "b=2"]
        assert [k.lower() for k, _ in header_pairs(head.headers)] == [
            "set-cookie",
            "content-type",
            "set-cookie",
        ]
        assert fp.read() == b"body"

    def test_body_offset(self) -> None:
        """body_offset points just past the metadata block."""
        raw = encode_head(200, "OK", [])
        head = decode_head(io.BytesIO(raw))
        assert head.body_offset == len(raw)

    def test_short_prefix(self) -> None:
        """Fewer than four bytes is a truncated prefix."""
        with pytest.raises(DecodeError, match="Truncated"):
            decode_head(io.BytesIO(b"\x01\x00"))

    def test_empty_file(self) -> None:
        with pytest.raises(DecodeError):
            decode_head(io.BytesIO(b""))

    def test_length_past_end_of_file(self) -> None:
        """A length larger than the remaining bytes is rejected."""
        with pytest.raises(DecodeError, match="past the end"):
            decode_head(io.BytesIO(struct.pack("<I", 500) + b"{}"))

    def test_invalid_json(self) -> None:
        with pytest.raises(DecodeError, match="Malformed"):
            decode_head(io.BytesIO(_frame(b"{not json")))

    def test_invalid_utf8(self) -> None:
        with pytest.raises(DecodeError):
            decode_head(io.BytesIO(_frame(b"\xff\xfe\xfd")))

    def test_missing_keys(self) -> None:
        """A JSON object without statusText is rejected."""
        payload = json.dumps({"headers": [], "status": 200}).encode()
        with pytest.raises(DecodeError):
            decode_head(io.BytesIO(_frame(payload)))

    def test_non_object_json(self) -> None:
        with pytest.raises(DecodeError):
            decode_head(io.BytesIO(_frame(b"[1, 2, 3]")))

    def test_header_bytes_round_trip(self) -> None:
        """Any header byte sequence is restored exactly."""
        raw = [(b"X-Latin", b"caf\xe9"), (b"X-Utf8", "naïve".encode("utf-8"))]
        pairs = header_pairs(httpx.Headers(raw))
        assert pairs == [("X-Latin", "caf\xe9"), ("X-Utf8", "na\xc3\xafve")]

        head = decode_head(io.BytesIO(encode_head(200, "OK", pairs)))
        assert head.headers.raw == raw

    def test_status_text_bytes(self) -> None:
        head = decode_head(io.BytesIO(encode_head(200, "Tr\xe8s bien", [])))
        assert head.reason_phrase == b"Tr\xe8s bien"

    def test_header_outside_byte_range(self) -> None:
        """Characters that do not map to a single byte are a corrupt entry."""
        payload = json.dumps(
            {"headers": [["x-title", "☕"]], "status": 200, "statusText": "OK"}
        ).encode()
        with pytest.raises(DecodeError, match="Malformed"):
            decode_head(io.BytesIO(_frame(payload)))


# ------------------------------------------------------------------ #
# Entry reading
# ------------------------------------------------------------------ #


class TestReadEntry:
    @pytest.mark.asyncio
    async def test_rebuilds_response(self, tmp_path: Path) -> None:
        """read_entry restores status, reason phrase, headers, body and URL."""
        path = tmp_path / "entry"
        path.write_bytes(encode_head(200, "Fine", [("content-type", "text/plain")]) + b"hello")

        response = await read_entry(path, "http://example.com/")
        assert response.status_code == 200
        assert response.reason_phrase == "Fine"
        assert response.headers["content-type"] == "text/plain"
        assert str(response.url) == "http://example.com/"
        assert await response.aread() == b"hello"

    @pytest.mark.asyncio
    async def test_body_is_not_loaded_eagerly(self, tmp_path: Path) -> None:
        """The returned response has an unread body stream."""
        path = tmp_path / "entry"
        path.write_bytes(encode_head(200, "OK", []) + b"x" * 10)

        response = await read_entry(path, "http://example.com/")
        with pytest.raises(httpx.ResponseNotRead):
            response.content
        await response.aclose()

    @pytest.mark.asyncio
    async def test_large_body_streams_in_chunks(self, tmp_path: Path) -> None:
        """A body larger than one chunk arrives intact."""
        body = bytes(range(256)) * 1024
        path = tmp_path / "entry"
        path.write_bytes(encode_head(200, "OK", []) + body)

        response = await read_entry(path, "http://example.com/big")
        chunks = [chunk async for chunk in response.aiter_raw()]
        assert len(chunks) > 1
        assert b"".join(chunks) == body

    @pytest.mark.asyncio
    async def test_empty_body(self, tmp_path: Path) -> None:
        path = tmp_path / "entry"
        path.write_bytes(encode_head(204, "No Content", []))

        response = await read_entry(path, "http://example.com/")
        assert await response.aread() == b""

    @pytest.mark.asyncio
    async def test_corrupt_entry(self, tmp_path: Path) -> None:
        path = tmp_path / "entry"
        path.write_bytes(b"\x00")
        with pytest.raises(DecodeError):
            await read_entry(path, "http://example.com/")

    @pytest.mark.asyncio
    async def test_body_survives_replacement(self, tmp_path: Path) -> None:
        """An opened entry keeps serving its own bytes after the file is replaced."""
        path = tmp_path / "entry"
        path.write_bytes(encode_head(200, "OK", []) + b"old")
        response = await read_entry(path, "http://example.com/")

        replacement = tmp_path / "replacement"
        replacement.write_bytes(encode_head(200, "OK", []) + b"new body")
        replacement.replace(path)

        assert await response.aread() == b"old"
