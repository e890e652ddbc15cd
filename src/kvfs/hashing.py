"""
Content hashing.

Chunks are addressed by SHAKE-256 squeezed to 8 bytes and read as a signed
little-endian 64-bit integer. The same function hashes string cache keys
into the integer key column of the persistent cache.
"""

from __future__ import annotations

import hashlib

from kvfs.types import HASH_WIDTH


def content_hash(data: bytes) -> int:
    """Compute the content address of ``data``.

    Args:
        data: Bytes to hash (chunk payload after transform).

    Returns:
        Signed 64-bit content hash.
    """
    digest = hashlib.shake_256(data).digest(HASH_WIDTH)
    return decode_hash(digest)


def hash_key(key: str) -> int:
    """Hash a string cache key to a signed 64-bit integer."""
    return content_hash(key.encode("utf-8"))


def encode_hash(value: int) -> bytes:
    """Encode a content hash as 8 little-endian bytes."""
    return value.to_bytes(HASH_WIDTH, "little", signed=True)


def decode_hash(data: bytes) -> int:
    """Decode 8 little-endian bytes into a content hash."""
    if len(data) != HASH_WIDTH:
        raise ValueError(f"Expected {HASH_WIDTH} bytes, got {len(data)}")
    return int.from_bytes(data, "little", signed=True)
