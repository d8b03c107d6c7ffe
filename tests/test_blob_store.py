"""
Tests for BlobStore: atomic writes, reads, removal and temp file handling.
"""

import errno
from pathlib import Path
from unittest.mock import patch

import pytest

from blobcache.error_handling import BlobNotFoundError, CacheStorageError
from blobcache.storage.blob_store import BlobStore, tmp_name, tmp_path_in
from blobcache.storage.paths import path_of


class TestTempNames:
    """Temporary file naming."""

    def test_prefix_and_length(self):
        name = tmp_name()
        assert name.startswith("tmp")
        assert len(name) == 13
        assert name[3:].isalnum()

    def test_names_are_random(self):
        assert len({tmp_name() for _ in range(50)}) == 50

    def test_path_in_directory(self, tmp_path):
        assert tmp_path_in(tmp_path).parent == tmp_path


class TestBlobStoreBasic:
    """Write/read/remove round trips."""

    @pytest.mark.asyncio
    async def test_write_then_read(self, blob_store):
        await blob_store.write(b"key", b"Hello World")
        assert await blob_store.read(b"key") == b"Hello World"

    @pytest.mark.asyncio
    async def test_file_lands_at_mapped_path(self, blob_store, cache_dir):
        await blob_store.write(b"\xaa\xbb\xcc", b"data")
        path = path_of(cache_dir, b"\xaa\xbb\xcc")
        assert path.read_bytes() == b"data"

    @pytest.mark.asyncio
    async def test_short_keys_produce_distinct_files(self, blob_store, cache_dir):
        await blob_store.write(b"\xaa", b"one")
        await blob_store.write(b"\xaa\xbb\xcc", b"three")
        assert (cache_dir / "__" / "__" / "aa").read_bytes() == b"one"
        assert (cache_dir / "aa" / "bb" / "aabbcc").read_bytes() == b"three"

    @pytest.mark.asyncio
    async def test_overwrite_replaces_content(self, blob_store):
        await blob_store.write(b"key", b"a much longer first value")
        await blob_store.write(b"key", b"short")
        assert await blob_store.read(b"key") == b"short"

    @pytest.mark.asyncio
    async def test_empty_value(self, blob_store):
        await blob_store.write(b"key", b"")
        assert await blob_store.read(b"key") == b""

    @pytest.mark.asyncio
    async def test_large_value(self, blob_store):
        data = bytes(range(256)) * 8192
        await blob_store.write(b"big", data)
        assert await blob_store.read(b"big") == data

    @pytest.mark.asyncio
    async def test_no_temp_files_left_after_write(self, blob_store, cache_dir):
        await blob_store.write(b"key", b"value")
        assert not list(cache_dir.glob("tmp*"))

    @pytest.mark.asyncio
    async def test_remove(self, blob_store):
        await blob_store.write(b"key", b"value")
        assert await blob_store.exists(b"key")
        await blob_store.remove(b"key")
        assert not await blob_store.exists(b"key")


class TestBlobStoreErrors:
    """Not-found and I/O failure conditions."""

    @pytest.mark.asyncio
    async def test_read_missing_is_not_found(self, blob_store):
        with pytest.raises(BlobNotFoundError):
            await blob_store.read(b"never written")

    @pytest.mark.asyncio
    async def test_remove_missing_is_not_found(self, blob_store):
        with pytest.raises(BlobNotFoundError):
            await blob_store.remove(b"never written")

    @pytest.mark.asyncio
    async def test_not_found_is_not_storage_error(self, blob_store):
        with pytest.raises(BlobNotFoundError) as exc_info:
            await blob_store.read(b"missing")
        assert not isinstance(exc_info.value, CacheStorageError)

    @pytest.mark.asyncio
    async def test_empty_key_rejected(self, blob_store):
        with pytest.raises(CacheStorageError):
            await blob_store.write(b"", b"value")

    @pytest.mark.asyncio
    async def test_write_into_missing_root_fails(self, tmp_path):
        store = BlobStore(tmp_path / "does-not-exist")
        with pytest.raises(CacheStorageError) as exc_info:
            await store.write(b"key", b"value")
        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.asyncio
    async def test_failed_rename_discards_temp_file(self, blob_store, cache_dir):
        disk_full = OSError(errno.ENOSPC, "No space left on device")
        with patch("aiofiles.os.replace", side_effect=disk_full):
            with pytest.raises(CacheStorageError):
                await blob_store.write(b"key", b"value")
        assert not list(cache_dir.glob("tmp*"))
        with pytest.raises(BlobNotFoundError):
            await blob_store.read(b"key")

    @pytest.mark.asyncio
    async def test_failed_rename_keeps_previous_blob(self, blob_store):
        await blob_store.write(b"key", b"old")
        with patch(
            "aiofiles.os.replace",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(CacheStorageError):
                await blob_store.write(b"key", b"new")
        assert await blob_store.read(b"key") == b"old"

    @pytest.mark.asyncio
    async def test_read_directory_is_storage_error(self, blob_store, cache_dir):
        path = path_of(cache_dir, b"dir-key")
        path.mkdir(parents=True)
        with pytest.raises(CacheStorageError):
            await blob_store.read(b"dir-key")

    def test_ensure_root_creates_directory(self, tmp_path):
        store = BlobStore(tmp_path / "a" / "b")
        store.ensure_root()
        assert Path(store.root).is_dir()
