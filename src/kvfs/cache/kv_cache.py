"""
Key-value cache implementations.

- InMemoryKVCache: bounded LRU held in process memory, lost on restart
- SQLiteKVCache: persistent cache in a SQLite table, fronted by a small LRU

Both are safe to share between worker threads: every operation runs under
a single per-instance lock. Both are first-writer-wins: ``put`` never
overwrites an existing entry and returns the value already stored.
"""

from __future__ import annotations

import sqlite3
import threading
from collections import OrderedDict
from enum import Enum
from pathlib import Path
from typing import Generic, Hashable, TypeVar

from kvfs.cache.base import CacheProtocol
from kvfs.config import is_sql_identifier
from kvfs.exceptions import CacheBackendError, ConfigurationError
from kvfs.hashing import hash_key
from kvfs.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CAPACITY = 128

K = TypeVar("K", bound=Hashable)

# Forward-only schema steps for one cache table; position + 1 is the version.
MIGRATIONS: tuple[str, ...] = (
    "CREATE TABLE {table} (key INTEGER NOT NULL, value BLOB NOT NULL)",
    "CREATE INDEX idx_{table}_key ON {table}(key)",
)


class CacheBackend(str, Enum):
    """Available local cache backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class _LRU(Generic[K]):
    """Recency-ordered bounded mapping. Not thread-safe on its own."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._data: OrderedDict[K, bytes] = OrderedDict()

    def get(self, key: K) -> bytes | None:
        value = self._data.get(key)
        if value is not None:
            self._data.move_to_end(key)
        return value

    def put(self, key: K, value: bytes) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.capacity:
            self._data.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class InMemoryKVCache(CacheProtocol):
    """Bounded in-memory cache keyed directly by the string key."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._lru: _LRU[str] = _LRU(capacity)
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._lru.capacity

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._lru.get(key)

    def put(self, key: str, value: bytes) -> bytes:
        with self._lock:
            existing = self._lru.get(key)
            if existing is not None:
                return existing
            self._lru.put(key, value)
            return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._lru)


class SQLiteKVCache(CacheProtocol):
    """Persistent cache stored in one SQLite table.

    String keys are hashed to signed 64-bit integers for the ``key``
    column. Entries are never evicted from the table; only the in-memory
    front LRU is bounded.
    """

    def __init__(
        self,
        path: Path | str,
        table: str = "kv",
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        """Open (and migrate) the cache database.

        Args:
            path: SQLite database file.
            table: Table holding this cache's entries.
            capacity: Entries kept in the in-memory front LRU.

        Raises:
            ConfigurationError: If ``table`` is not a SQL identifier.
            CacheBackendError: If the database cannot be opened or migrated.
        """
        if not is_sql_identifier(table):
            raise ConfigurationError(
                "Cache table name must be a SQL identifier",
                context={"table": table},
            )

        self.path = Path(path)
        self.table = table
        self._lru: _LRU[int] = _LRU(capacity)
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = self._open()

    def _open(self) -> sqlite3.Connection:
        """Connect and bring the schema up to date."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.path),
                timeout=30.0,
                isolation_level="DEFERRED",
                check_same_thread=False,
            )
        except (OSError, sqlite3.Error) as e:
            raise CacheBackendError(
                "Failed to open cache database",
                context={"path": str(self.path), "error": str(e)},
            ) from e

        try:
            self._migrate(conn)
        except sqlite3.Error as e:
            conn.close()
            raise CacheBackendError(
                "Failed to migrate cache database",
                context={"path": str(self.path), "table": self.table, "error": str(e)},
            ) from e

        return conn

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Apply the migrations this table has not seen yet.

        Versions are tracked per table so several caches can share one file.
        """
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kvfs_migrations (
                table_name TEXT PRIMARY KEY,
                version INTEGER NOT NULL
            )
        """)
        cursor.execute(
            "SELECT version FROM kvfs_migrations WHERE table_name = ?",
            (self.table,),
        )
        row = cursor.fetchone()
        current = row[0] if row else 0

        for version, statement in enumerate(MIGRATIONS, start=1):
            if version <= current:
                continue
            cursor.execute(statement.format(table=self.table))
            cursor.execute(
                "INSERT OR REPLACE INTO kvfs_migrations (table_name, version) VALUES (?, ?)",
                (self.table, version),
            )
            logger.debug("Applied cache migration", table=self.table, version=version)

        conn.commit()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise CacheBackendError(
                "Cache database is closed",
                context={"path": str(self.path), "table": self.table},
            )
        return self._conn

    def _select(self, hashed: int) -> bytes | None:
        cursor = self._get_conn().cursor()
        cursor.execute(
            f"SELECT value FROM {self.table} WHERE key = ? LIMIT 1",
            (hashed,),
        )
        row = cursor.fetchone()
        return bytes(row[0]) if row else None

    def get(self, key: str) -> bytes | None:
        hashed = hash_key(key)
        with self._lock:
            value = self._lru.get(hashed)
            if value is not None:
                return value
            try:
                value = self._select(hashed)
            except sqlite3.Error as e:
                raise CacheBackendError(
                    "Cache lookup failed",
                    context={"table": self.table, "key": key, "error": str(e)},
                ) from e
            if value is not None:
                self._lru.put(hashed, value)
            return value

    def put(self, key: str, value: bytes) -> bytes:
        with self._lock:
            existing = self.get(key)
            if existing is not None:
                return existing

            hashed = hash_key(key)
            conn = self._get_conn()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    f"INSERT INTO {self.table} (key, value) VALUES (?, ?)",
                    (hashed, sqlite3.Binary(value)),
                )
                if cursor.rowcount != 1:
                    conn.rollback()
                    raise CacheBackendError(
                        "Cache insert did not affect exactly one row",
                        context={"table": self.table, "key": key, "rows": cursor.rowcount},
                    )
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise CacheBackendError(
                    "Cache insert failed",
                    context={"table": self.table, "key": key, "error": str(e)},
                ) from e

            self._lru.put(hashed, value)
            return value

    def __len__(self) -> int:
        with self._lock:
            try:
                cursor = self._get_conn().cursor()
                cursor.execute(f"SELECT COUNT(*) FROM {self.table}")
                return cursor.fetchone()[0]
            except sqlite3.Error as e:
                raise CacheBackendError(
                    "Cache count failed",
                    context={"table": self.table, "error": str(e)},
                ) from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def open_cache(
    backend: CacheBackend | str = CacheBackend.SQLITE,
    path: Path | str = "./cache.db",
    table: str = "kv",
    capacity: int = DEFAULT_CAPACITY,
) -> CacheProtocol:
    """Construct the local cache chosen by the embedder.

    A SQLite cache that cannot be opened or migrated (including an invalid
    table name) degrades to an in-memory cache instead of failing.

    Args:
        backend: Which cache variant to build.
        path: SQLite database file (sqlite backend only).
        table: SQLite table name (sqlite backend only).
        capacity: In-memory LRU size.

    Returns:
        A ready-to-use cache instance.
    """
    backend = CacheBackend(backend)

    if backend is CacheBackend.MEMORY:
        return InMemoryKVCache(capacity)

    try:
        cache = SQLiteKVCache(path, table=table, capacity=capacity)
    except (CacheBackendError, ConfigurationError) as e:
        logger.warning(
            "Persistent cache unavailable, falling back to in-memory cache",
            path=str(path),
            table=table,
            error=str(e),
        )
        return InMemoryKVCache(capacity)

    logger.debug("Opened persistent cache", path=str(path), table=table)
    return cache
