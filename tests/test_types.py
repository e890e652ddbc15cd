"""
Tests for object keys.
"""

from __future__ import annotations

import pytest

from kvfs.types import ObjectKey, ObjectKind


class TestObjectKey:
    """Test index and chunk addressing."""

    def test_index_key(self) -> None:
        """Test that index keys use the reserved suffix and are not verified."""
        key = ObjectKey.index("photo.jpg")

        assert key.kind is ObjectKind.INDEX
        assert key.is_index
        assert key.cache_key == "photo.jpg:index"
        assert key.remote_path("fs") == "fs/photo.jpg:index"
        assert key.expected_hash is None

    def test_chunk_key(self) -> None:
        """Test that chunk keys use the decimal hash as suffix."""
        key = ObjectKey.chunk("photo.jpg", -42)

        assert not key.is_index
        assert key.cache_key == "photo.jpg:-42"
        assert key.remote_path("fs") == "fs/photo.jpg:-42"
        assert key.expected_hash == -42

    def test_zero_hash_chunk_is_not_the_index(self) -> None:
        """Test that a zero hash never aliases the index key."""
        chunk = ObjectKey.chunk("a", 0)
        index = ObjectKey.index("a")

        assert chunk != index
        assert chunk.cache_key == "a:0"
        assert chunk.expected_hash == 0

    def test_chunk_requires_hash(self) -> None:
        """Test that chunk keys must carry a hash."""
        with pytest.raises(ValueError):
            ObjectKey("a", ObjectKind.CHUNK)

    def test_index_rejects_hash(self) -> None:
        """Test that index keys cannot carry a hash."""
        with pytest.raises(ValueError):
            ObjectKey("a", ObjectKind.INDEX, 7)

    def test_keys_are_hashable(self) -> None:
        """Test that equal keys collapse in sets."""
        assert len({ObjectKey.chunk("a", 1), ObjectKey.chunk("a", 1)}) == 1

    def test_remote_path_encodes_name_but_cache_key_does_not(self) -> None:
        """Test that only the URL form of a key is percent-encoded."""
        key = ObjectKey.chunk("clip#1 a/b?", 7)

        assert key.cache_key == "clip#1 a/b?:7"
        assert key.remote_path("fs") == "fs/clip%231%20a%2Fb%3F:7"
