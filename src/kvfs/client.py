"""
BlobClient: large-object storage on top of the remote key-value service.

Write path:
    blob -> chunks -> (parallel) transform, hash, POST each chunk
         -> index of chunk hashes in original order -> POST index

Read path:
    index (cache, then remote) -> ordered hashes
         -> (parallel) chunk (cache, then remote), verified
         -> inverse transform -> concatenate in original order

The local cache is injected by the caller and may be shared by any number
of clients in the process.
"""

from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor
from types import TracebackType
from typing import Any, Callable, Sequence, TypeVar

from kvfs.cache import CacheProtocol, open_cache
from kvfs.chunking import decode_index, encode_index, reassemble, split
from kvfs.config import Settings, get_settings
from kvfs.exceptions import CacheBackendError, IntegrityError
from kvfs.hashing import content_hash
from kvfs.logging import get_logger, log_context
from kvfs.remote import RemoteTransport
from kvfs.transforms import ChunkTransform, IdentityTransform
from kvfs.types import CHUNK_SIZE, FAILED_HASH, ObjectKey

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8

T = TypeVar("T")
R = TypeVar("R")


class BlobClient:
    """Stores and retrieves named blobs as content-addressed chunks."""

    def __init__(
        self,
        transport: RemoteTransport,
        cache: CacheProtocol,
        transform: ChunkTransform | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        """Initialize the client.

        Args:
            transport: Remote service transport.
            cache: Local cache shared by every client in the process.
            transform: Encode/decode pair applied to chunk payloads.
            max_workers: Parallel chunk transfers per blob.
            chunk_size: Maximum chunk length in bytes.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.transport = transport
        self.cache = cache
        self.transform = transform or IdentityTransform()
        self.max_workers = max_workers
        self.chunk_size = chunk_size
        self._owns_cache = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        cache: CacheProtocol | None = None,
        transform: ChunkTransform | None = None,
    ) -> BlobClient:
        """Build a client from configuration.

        Args:
            settings: Settings to use; defaults to the environment.
            cache: Existing cache to share; one is opened from settings if None.
            transform: Chunk transform.
        """
        settings = settings or get_settings()

        transport = RemoteTransport(
            endpoint=settings.endpoint,
            prefix=settings.prefix,
            auth=settings.KVFS_AUTH,
            client_pem=settings.load_client_pem(),
            timeout=settings.REQUEST_TIMEOUT,
        )
        owns_cache = cache is None
        if cache is None:
            cache = open_cache(
                settings.CACHE_BACKEND,
                path=settings.CACHE_PATH,
                table=settings.CACHE_TABLE,
                capacity=settings.CACHE_CAPACITY,
            )

        client = cls(
            transport,
            cache,
            transform=transform,
            max_workers=settings.MAX_WORKERS,
        )
        client._owns_cache = owns_cache
        return client

    # ============== Cache helpers ==============

    def _cache_get(self, key: ObjectKey) -> bytes | None:
        """Cache lookup; a broken cache counts as a miss."""
        try:
            return self.cache.get(key.cache_key)
        except CacheBackendError as e:
            logger.warning("Cache lookup failed, treating as miss", key=key.cache_key, error=str(e))
            return None

    def _cache_put(self, key: ObjectKey, data: bytes) -> bytes:
        """Cache store; returns the canonical value, or ``data`` if the cache fails."""
        try:
            return self.cache.put(key.cache_key, data)
        except CacheBackendError as e:
            logger.warning("Cache store failed, continuing uncached", key=key.cache_key, error=str(e))
            return data

    def _fetch(
        self,
        key: ObjectKey,
        validate: Callable[[bytes], Any] | None = None,
    ) -> bytes:
        """Get an object through the cache, falling back to the remote service.

        Cached bytes were verified when they were stored and are returned
        as-is. Remote bytes are verified by the transport and by
        ``validate``, then offered to the cache, whose canonical value wins.
        """
        cached = self._cache_get(key)
        if cached is not None:
            logger.debug("Cache hit", key=key.cache_key)
            return cached

        data = self.transport.get(key)
        if validate is not None:
            validate(data)
        return self._cache_put(key, data)

    def _map_ordered(self, fn: Callable[[T], R], items: Sequence[T]) -> list[R]:
        """Run ``fn`` over ``items`` on a worker pool.

        Results come back in input order regardless of completion order.
        The first failure in input order is raised and unstarted work is
        cancelled.
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, fn, item)
                for item in items
            ]
            try:
                return [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

    # ============== Write path ==============

    def _put_chunk(self, name: str, chunk: bytes) -> int:
        """Transform, hash and upload one chunk; FAILED_HASH on failure."""
        payload = self.transform.encode(chunk)
        key = ObjectKey.chunk(name, content_hash(payload))
        if key.content_hash == FAILED_HASH:
            logger.warning("Chunk hashes to the failure placeholder", key=key.cache_key)

        stored = self.transport.put(key, payload)
        if stored != FAILED_HASH:
            self._cache_put(key, payload)
        return stored

    def put_blob(self, name: str, data: bytes) -> list[int]:
        """Store ``data`` under ``name``.

        Best-effort: upload failures are logged, never raised. A chunk whose
        upload failed is recorded in the index as FAILED_HASH, and reading
        the blob back will fail with IntegrityError.

        Args:
            name: Blob name.
            data: Blob contents.

        Returns:
            The content hashes written to the index, in chunk order, with
            FAILED_HASH for failed chunks. Informational; callers may ignore it.
        """
        with log_context(blob=name, operation="put"):
            chunks = split(data, self.chunk_size)

            hashes = self._map_ordered(lambda c: self._put_chunk(name, c), chunks)

            failed = sum(1 for h in hashes if h == FAILED_HASH)
            if failed:
                logger.error("Blob stored with failed chunks", chunks=len(hashes), failed=failed)

            index = encode_index(hashes)
            index_key = ObjectKey.index(name)
            if self.transport.put(index_key, index) != FAILED_HASH:
                self._cache_put(index_key, index)

            logger.info("Stored blob", size=len(data), chunks=len(hashes))
            return hashes

    # ============== Read path ==============

    def _get_chunk(self, name: str, chunk_hash: int) -> bytes:
        if chunk_hash == FAILED_HASH:
            raise IntegrityError(
                "Index references a chunk whose upload failed",
                context={"blob": name},
            )
        return self.transform.decode(self._fetch(ObjectKey.chunk(name, chunk_hash)))

    def get_blob(self, name: str) -> bytes:
        """Retrieve the blob stored under ``name``.

        Args:
            name: Blob name.

        Returns:
            The blob contents.

        Raises:
            TransportError: If the index or a chunk could not be fetched.
            IntegrityError: If a chunk did not match its content hash.
            ParseError: If the index is malformed.
        """
        with log_context(blob=name, operation="get"):
            # A malformed index is rejected before it reaches the cache.
            index = self._fetch(ObjectKey.index(name), validate=decode_index)
            hashes = decode_index(index)

            chunks = self._map_ordered(lambda h: self._get_chunk(name, h), hashes)

            data = reassemble(chunks)
            logger.debug("Fetched blob", size=len(data), chunks=len(chunks))
            return data

    def close(self) -> None:
        """Close the transport, and the cache if this client opened it.

        An injected cache may be shared with other clients and stays open.
        """
        self.transport.close()
        if self._owns_cache:
            self.cache.close()

    def __enter__(self) -> BlobClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
