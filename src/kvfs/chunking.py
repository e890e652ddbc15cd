"""
Splitting blobs into chunks and encoding the index that reassembles them.
"""

from __future__ import annotations

from typing import Iterable

from kvfs.exceptions import ParseError
from kvfs.hashing import decode_hash, encode_hash
from kvfs.types import CHUNK_SIZE, HASH_WIDTH


def split(data: bytes, chunk_size: int = CHUNK_SIZE) -> list[bytes]:
    """Partition ``data`` into contiguous chunks of at most ``chunk_size``.

    Empty input yields no chunks; its index is empty and reassembles to b"".
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    view = memoryview(data)
    return [bytes(view[i : i + chunk_size]) for i in range(0, len(data), chunk_size)]


def reassemble(chunks: Iterable[bytes]) -> bytes:
    """Concatenate chunks in the given order."""
    return b"".join(chunks)


def encode_index(hashes: Iterable[int]) -> bytes:
    """Serialize an ordered list of content hashes."""
    return b"".join(encode_hash(h) for h in hashes)


def decode_index(data: bytes) -> list[int]:
    """Parse an index back into its ordered content hashes.

    Raises:
        ParseError: If the length is not a multiple of the hash width.
    """
    if len(data) % HASH_WIDTH != 0:
        raise ParseError(
            "Index length is not a multiple of the hash width",
            context={"length": len(data), "hash_width": HASH_WIDTH},
        )
    return [
        decode_hash(data[i : i + HASH_WIDTH]) for i in range(0, len(data), HASH_WIDTH)
    ]
