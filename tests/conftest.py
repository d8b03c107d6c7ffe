"""
Shared fixtures for blobcache tests.
"""

import pytest
import pytest_asyncio

from blobcache import Cache, CacheConfig
from blobcache.storage import BlobStore, InMemoryIndex


@pytest.fixture
def cache_dir(tmp_path):
    """Return a fresh cache root directory."""
    return tmp_path / "cache"


@pytest.fixture
def blob_store(cache_dir):
    """BlobStore with its root created."""
    store = BlobStore(cache_dir)
    store.ensure_root()
    return store


@pytest_asyncio.fixture
async def cache(cache_dir):
    """Cache on the default SQLite index, access tracking off."""
    c = Cache(CacheConfig(cache_dir=str(cache_dir)))
    yield c
    c.close()


@pytest_asyncio.fixture
async def tracking_cache(cache_dir):
    """Cache with access tracking enabled."""
    c = Cache(CacheConfig(cache_dir=str(cache_dir), track_access=True))
    yield c
    c.close()


@pytest_asyncio.fixture
async def memory_cache(cache_dir):
    """Cache backed by an in-memory index."""
    c = Cache(CacheConfig(cache_dir=str(cache_dir)), metadata_index=InMemoryIndex())
    yield c
    c.close()
