"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates required fields and provides typed access to settings.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_sql_identifier(name: str) -> bool:
    """Check that ``name`` can be used unquoted as a SQLite table name."""
    return bool(_IDENTIFIER_RE.match(name))


class Settings(BaseSettings):
    """Settings loaded from environment variables.

    Required:
        KVFS_ENDPOINT: Base URL of the remote blob service (http or https)

    Optional:
        KVFS_PREFIX: Namespace prefix for every remote key
        KVFS_AUTH: Value of the Authorization header (e.g. "Bearer ...")
        KVFS_CLIENT_PEM: Path to a PEM file holding client cert and key
        CACHE_BACKEND: Local cache variant (sqlite|memory)
        CACHE_PATH: SQLite file for the persistent cache
        CACHE_TABLE: Table name inside the SQLite file
        CACHE_CAPACITY: Entries kept in the in-memory LRU
        MAX_WORKERS: Parallel chunk transfers per blob
        REQUEST_TIMEOUT: Per-request timeout in seconds
        LOG_LEVEL: Logging level
        LOG_FILE: JSON Lines log file (console only when unset)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote service
    KVFS_ENDPOINT: str = Field(
        ...,
        description="Base URL of the remote blob service",
    )
    KVFS_PREFIX: str = Field(default="fs", description="Remote key namespace prefix")
    KVFS_AUTH: str | None = Field(default=None, description="Authorization header value")
    KVFS_CLIENT_PEM: Path | None = Field(
        default=None, description="PEM file with client certificate and key"
    )

    # Local cache
    CACHE_BACKEND: Literal["sqlite", "memory"] = Field(
        default="sqlite", description="Local cache backend"
    )
    CACHE_PATH: Path = Field(default=Path("./cache.db"), description="SQLite cache file")
    CACHE_TABLE: str = Field(default="kv", description="SQLite cache table")
    CACHE_CAPACITY: int = Field(
        default=128, ge=1, description="Entries held in the in-memory LRU"
    )

    # Transfers
    MAX_WORKERS: int = Field(
        default=8, ge=1, le=64, description="Parallel chunk transfers per blob"
    )
    REQUEST_TIMEOUT: float = Field(
        default=30.0, gt=0.0, description="Per-request timeout in seconds"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON Lines log file")

    @field_validator("KVFS_ENDPOINT")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                "KVFS_ENDPOINT must be an http:// or https:// URL"
            )
        return v.rstrip("/")

    @field_validator("KVFS_PREFIX")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Strip surrounding slashes so keys join cleanly."""
        v = v.strip("/")
        if not v:
            raise ValueError("KVFS_PREFIX must not be empty")
        return v

    @field_validator("CACHE_TABLE")
    @classmethod
    def validate_cache_table(cls, v: str) -> str:
        """Only plain identifiers are interpolated into SQL."""
        if not is_sql_identifier(v):
            raise ValueError(
                f"CACHE_TABLE must be a SQL identifier, got {v!r}"
            )
        return v

    @property
    def endpoint(self) -> str:
        """Get remote endpoint (lowercase alias)."""
        return self.KVFS_ENDPOINT

    @property
    def prefix(self) -> str:
        """Get remote prefix (lowercase alias)."""
        return self.KVFS_PREFIX

    def load_client_pem(self) -> bytes | None:
        """Read the client PEM file, if one is configured."""
        if self.KVFS_CLIENT_PEM is None:
            return None
        return self.KVFS_CLIENT_PEM.read_bytes()

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings with the auth header redacted for display."""
        auth = self.KVFS_AUTH
        if auth is not None:
            auth = f"{auth[:8]}...{auth[-4:]}" if len(auth) > 12 else "***"

        return {
            "KVFS_ENDPOINT": self.KVFS_ENDPOINT,
            "KVFS_PREFIX": self.KVFS_PREFIX,
            "KVFS_AUTH": auth,
            "KVFS_CLIENT_PEM": str(self.KVFS_CLIENT_PEM) if self.KVFS_CLIENT_PEM else None,
            "CACHE_BACKEND": self.CACHE_BACKEND,
            "CACHE_PATH": str(self.CACHE_PATH),
            "CACHE_TABLE": self.CACHE_TABLE,
            "CACHE_CAPACITY": self.CACHE_CAPACITY,
            "MAX_WORKERS": self.MAX_WORKERS,
            "REQUEST_TIMEOUT": self.REQUEST_TIMEOUT,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
