"""
Pytest configuration and fixtures for kvfs tests.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import Counter
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import httpx
import pytest

from kvfs.cache import InMemoryKVCache
from kvfs.client import BlobClient
from kvfs.config import Settings, clear_settings_cache
from kvfs.logging import setup_logging
from kvfs.remote import RemoteTransport

ENDPOINT = "https://kv.test"
PREFIX = "fs"


class FakeBlobService:
    """In-memory stand-in for the remote key-value service.

    Objects are stored by URL path. Paths can be made to fail or to
    return corrupted bytes.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.requests: Counter[str] = Counter()
        self.fail_all = False
        self.fail_posts_matching: str | None = None
        self.corrupt_paths: set[str] = set()
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        # Keyed by the path as sent, so percent-encoded names stay distinct
        path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        with self._lock:
            self.requests[request.method] += 1

        if self.fail_all:
            raise httpx.ConnectError("service unavailable", request=request)

        if request.method == "POST":
            if self.fail_posts_matching and self.fail_posts_matching in path:
                return httpx.Response(503)
            self.objects[path] = request.read()
            return httpx.Response(200)

        if request.method == "GET":
            if path not in self.objects:
                return httpx.Response(404)
            body = self.objects[path]
            if path in self.corrupt_paths:
                body = body + b"corrupt"
            return httpx.Response(200, content=body)

        return httpx.Response(405)

    def object(self, key: str) -> bytes:
        """Stored bytes for ``{name}:{suffix}``."""
        return self.objects[f"/{PREFIX}/{key}"]

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def blob_service() -> FakeBlobService:
    """Provide an empty fake blob service."""
    return FakeBlobService()


@pytest.fixture
def transport(blob_service: FakeBlobService) -> Generator[RemoteTransport, None, None]:
    """Provide a transport wired to the fake service."""
    t = RemoteTransport(ENDPOINT, PREFIX, http_client=blob_service.client())
    yield t
    t.close()


@pytest.fixture
def cache() -> InMemoryKVCache:
    """Provide an empty in-memory cache."""
    return InMemoryKVCache()


@pytest.fixture
def blob_client(transport: RemoteTransport, cache: InMemoryKVCache) -> BlobClient:
    """Provide a client with a small chunk size so tests span many chunks."""
    return BlobClient(transport, cache, max_workers=4, chunk_size=16)


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "KVFS_ENDPOINT": "https://kv.example.com/",
        "KVFS_PREFIX": "/blobs/",
        "KVFS_AUTH": "Bearer test-token-1234567890",
        "CACHE_BACKEND": "memory",
        "CACHE_TABLE": "test_kv",
        "CACHE_CAPACITY": "16",
        "MAX_WORKERS": "2",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str], temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide a Settings instance with the cache file under temp_dir."""
    with patch.dict(os.environ, {"CACHE_PATH": str(temp_dir / "cache.db")}):
        clear_settings_cache()
        from kvfs.config import get_settings

        yield get_settings()
        clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Reset kvfs logging to console-only after a test reconfigures it."""
    yield
    for handler in logging.getLogger("kvfs").handlers:
        handler.close()
    setup_logging()
