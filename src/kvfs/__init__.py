"""
kvfs - large-object storage on a remote key-value blob service.

Blobs are split into 1 MiB chunks addressed by content hash, uploaded in
parallel, and described by an index object. A local cache keyed by content
address avoids refetching chunks already seen.
"""

from kvfs.cache import CacheBackend, CacheProtocol, InMemoryKVCache, SQLiteKVCache, open_cache
from kvfs.client import BlobClient
from kvfs.exceptions import (
    CacheBackendError,
    ConfigurationError,
    IntegrityError,
    KVFSError,
    ParseError,
    TransportError,
)
from kvfs.remote import RemoteTransport
from kvfs.transforms import ChunkTransform, FunctionTransform, IdentityTransform

__version__ = "0.1.0"

__all__ = [
    "BlobClient",
    "CacheBackend",
    "CacheBackendError",
    "CacheProtocol",
    "ChunkTransform",
    "ConfigurationError",
    "FunctionTransform",
    "IdentityTransform",
    "InMemoryKVCache",
    "IntegrityError",
    "KVFSError",
    "ParseError",
    "RemoteTransport",
    "SQLiteKVCache",
    "TransportError",
    "open_cache",
]
