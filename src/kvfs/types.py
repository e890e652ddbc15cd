"""
Core types for kvfs.

This module defines the constants and value types shared by every layer:
- Chunking and index constants (CHUNK_SIZE, HASH_WIDTH)
- ObjectKind, which tags an object as a blob's index or one of its chunks
- ObjectKey, the frozen address of a remote/cached object
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

# Blobs are stored as chunks of at most 1 MiB
CHUNK_SIZE = 1024 * 1024

# Content hashes are signed 64-bit integers, 8 bytes little-endian in an index
HASH_WIDTH = 8

INDEX_SUFFIX = "index"

# Placeholder written into an index for a chunk whose upload failed
FAILED_HASH = 0


class ObjectKind(str, Enum):
    """Kinds of objects stored for a blob."""

    INDEX = "index"
    CHUNK = "chunk"


@dataclass(frozen=True)
class ObjectKey:
    """Address of one stored object: a blob's index or one of its chunks.

    Index objects carry no content hash; chunk objects are addressed by the
    hash of their (transformed) bytes.
    """

    name: str
    kind: ObjectKind
    content_hash: int | None = None

    def __post_init__(self) -> None:
        if self.kind is ObjectKind.CHUNK and self.content_hash is None:
            raise ValueError("Chunk keys require a content hash")
        if self.kind is ObjectKind.INDEX and self.content_hash is not None:
            raise ValueError("Index keys do not carry a content hash")

    @classmethod
    def index(cls, name: str) -> ObjectKey:
        """Key of the index object for blob ``name``."""
        return cls(name=name, kind=ObjectKind.INDEX)

    @classmethod
    def chunk(cls, name: str, content_hash: int) -> ObjectKey:
        """Key of the chunk of blob ``name`` with the given content hash."""
        return cls(name=name, kind=ObjectKind.CHUNK, content_hash=content_hash)

    @property
    def is_index(self) -> bool:
        return self.kind is ObjectKind.INDEX

    @property
    def suffix(self) -> str:
        if self.is_index:
            return INDEX_SUFFIX
        return str(self.content_hash)

    @property
    def cache_key(self) -> str:
        """Local cache key, ``{name}:{suffix}``."""
        return f"{self.name}:{self.suffix}"

    @property
    def expected_hash(self) -> int | None:
        """Hash fetched bytes must match, or None when not verified."""
        return None if self.is_index else self.content_hash

    def remote_path(self, prefix: str) -> str:
        """Remote object path, ``{prefix}/{name}:{suffix}``.

        The name is percent-encoded so that any string (including /, ?, #
        and %) stays a single path segment.
        """
        return f"{prefix}/{quote(self.name, safe='')}:{self.suffix}"
