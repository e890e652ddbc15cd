"""
Base classes for caching.

Every local cache exposes the same two operations:
- get(key): cached bytes, or None on a miss
- put(key, value): store value unless the key is already present, and
  return whatever is now canonically stored (first writer wins)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import TracebackType


class CacheProtocol(ABC):
    """Abstract interface for content-addressed cache implementations."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Get a value from the cache.

        Raises:
            CacheBackendError: If the backend fails.
        """
        ...

    @abstractmethod
    def put(self, key: str, value: bytes) -> bytes:
        """Store a value unless one already exists for ``key``.

        Returns:
            The value stored for ``key`` after the call. This is the
            existing value when the key was already present.

        Raises:
            CacheBackendError: If the backend fails.
        """
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> CacheProtocol:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
