"""
Custom exception hierarchy for kvfs.

All exceptions inherit from KVFSError, which provides optional context
for structured error handling and logging. Callers of ``get_blob`` can
tell the failure kinds apart and decide whether to retry, treat the blob
as missing, or abort.
"""

from __future__ import annotations

from typing import Any


class KVFSError(Exception):
    """Base exception for all kvfs errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(KVFSError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Missing KVFS_ENDPOINT
        - Cache table name that is not a SQL identifier
        - Client PEM that cannot be loaded
    """

    pass


class TransportError(KVFSError):
    """Raised when talking to the remote blob service fails.

    Context should include:
        - url: The URL that was being requested
        - status_code: HTTP status code if a response was received
        - attempts: Number of attempts made
    """

    pass


class IntegrityError(KVFSError):
    """Raised when fetched chunk bytes do not match their content address.

    Also raised for index entries that point at a chunk whose upload
    never succeeded.

    Context should include:
        - key: The object key
        - expected: The expected content hash
        - actual: The hash of the bytes received
    """

    pass


class ParseError(KVFSError):
    """Raised when an index object cannot be decoded.

    Context should include:
        - length: Byte length of the index
    """

    pass


class CacheBackendError(KVFSError):
    """Raised when the local cache backend fails to open, migrate or query.

    Context should include:
        - path: Database path
        - table: Cache table name
    """

    pass
