"""Tests for the awaitable filesystem helpers."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from fetchcache.cache import fs
from fetchcache.exceptions import StorageError


class TestDirectories:
    @pytest.mark.asyncio
    async def test_make_dirs_is_idempotent(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b"
        await fs.make_dirs(target)
        (target / "keep").write_text("x")
        await fs.make_dirs(target)
        assert (target / "keep").exists()

    @pytest.mark.asyncio
    async def test_list_dir_skips_hidden(self, tmp_path: Path) -> None:
        (tmp_path / "visible").write_text("")
        (tmp_path / ".hidden.tmp").write_text("")
        assert await fs.list_dir(tmp_path) == ["visible"]

    @pytest.mark.asyncio
    async def test_list_missing_dir(self, tmp_path: Path) -> None:
        assert await fs.list_dir(tmp_path / "nope", missing_ok=True) == []
        with pytest.raises(StorageError, match="Cannot list"):
            await fs.list_dir(tmp_path / "nope")

    @pytest.mark.asyncio
    async def test_is_dir(self, tmp_path: Path) -> None:
        (tmp_path / "file").write_text("")
        assert await fs.is_dir(tmp_path) is True
        assert await fs.is_dir(tmp_path / "file") is False
        assert await fs.is_dir(tmp_path / "missing") is False

    @pytest.mark.asyncio
    async def test_remove_tree(self, tmp_path: Path) -> None:
        target = tmp_path / "tree"
        (target / "sub").mkdir(parents=True)
        (target / "sub" / "f").write_text("x")
        await fs.remove_tree(target)
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_remove_file(self, tmp_path: Path) -> None:
        target = tmp_path / "f"
        target.write_text("x")
        assert await fs.remove_file(target) is True
        assert await fs.remove_file(target) is False


class TestAtomicFileWriter:
    @pytest.mark.asyncio
    async def test_writes_chunks(self, tmp_path: Path) -> None:
        target = tmp_path / "entry"
        async with fs.AtomicFileWriter(target) as writer:
            await writer.write(b"head")
            await writer.write(b"")
            await writer.write(b"body")
        assert target.read_bytes() == b"headbody"
        assert list(tmp_path.iterdir()) == [target]

    @pytest.mark.asyncio
    async def test_replaces_existing(self, tmp_path: Path) -> None:
        target = tmp_path / "entry"
        target.write_bytes(b"old")
        async with fs.AtomicFileWriter(target) as writer:
            await writer.write(b"new")
        assert target.read_bytes() == b"new"

    @pytest.mark.asyncio
    async def test_error_keeps_old_file(self, tmp_path: Path) -> None:
        """An exception inside the block discards the temp file."""
        target = tmp_path / "entry"
        target.write_bytes(b"old")
        with pytest.raises(RuntimeError):
            async with fs.AtomicFileWriter(target) as writer:
                await writer.write(b"partial")
                raise RuntimeError("interrupted")
        assert target.read_bytes() == b"old"
        assert list(tmp_path.iterdir()) == [target]

    @pytest.mark.asyncio
    async def test_fsync_failure_is_storage_error(self, tmp_path: Path) -> None:
        target = tmp_path / "entry"
        with patch("fetchcache.cache.fs.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(StorageError, match="disk error"):
                async with fs.AtomicFileWriter(target) as writer:
                    await writer.write(b"data")
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(StorageError):
            async with fs.AtomicFileWriter(tmp_path / "gone" / "entry"):
                pass
