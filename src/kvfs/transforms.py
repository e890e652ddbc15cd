"""
Byte transforms applied to chunk payloads.

A transform is an encode/decode pair. ``encode`` runs on every chunk before
it is hashed and uploaded; ``decode`` runs on every chunk after it is
fetched and verified. The index object never passes through a transform.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable


class ChunkTransform(ABC):
    """Reversible transform over chunk bytes.

    Implementations must satisfy ``decode(encode(x)) == x``.
    """

    @abstractmethod
    def encode(self, data: bytes) -> bytes:
        """Transform chunk bytes before upload."""
        ...

    @abstractmethod
    def decode(self, data: bytes) -> bytes:
        """Undo ``encode`` on fetched chunk bytes."""
        ...


class IdentityTransform(ChunkTransform):
    """Leaves chunk bytes untouched."""

    def encode(self, data: bytes) -> bytes:
        return data

    def decode(self, data: bytes) -> bytes:
        return data


class FunctionTransform(ChunkTransform):
    """Adapts a pair of plain callables to ChunkTransform."""

    def __init__(
        self,
        encode: Callable[[bytes], bytes],
        decode: Callable[[bytes], bytes],
    ) -> None:
        self._encode = encode
        self._decode = decode

    def encode(self, data: bytes) -> bytes:
        return self._encode(data)

    def decode(self, data: bytes) -> bytes:
        return self._decode(data)
