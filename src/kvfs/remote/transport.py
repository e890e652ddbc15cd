"""
HTTP transport for the remote key-value blob service.

The service exposes a plain object surface:
- POST {endpoint}/{prefix}/{name}:{suffix} stores the request body
- GET  {endpoint}/{prefix}/{name}:{suffix} returns it

Writes are fail-soft: after the retry budget is spent the failure is logged
and FAILED_HASH is returned. Reads are fail-hard: the last error is raised.
"""

from __future__ import annotations

import os
import ssl
import tempfile
from types import TracebackType
from typing import Mapping

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)

from kvfs.exceptions import ConfigurationError, IntegrityError, TransportError
from kvfs.hashing import content_hash
from kvfs.logging import get_logger
from kvfs.types import FAILED_HASH, ObjectKey

logger = get_logger(__name__)

# One initial attempt plus three retries, no backoff between them
MAX_ATTEMPTS = 4
DEFAULT_TIMEOUT = 30.0


def _valid_header_value(value: str) -> bool:
    """Reject values httpx cannot send as a header."""
    if "\r" in value or "\n" in value:
        return False
    try:
        value.encode("ascii")
    except UnicodeEncodeError:
        return False
    return True


def build_ssl_context(client_pem: bytes) -> ssl.SSLContext:
    """Create an SSL context presenting the client identity in ``client_pem``.

    The PEM must hold both the certificate (chain) and its private key.

    Raises:
        ConfigurationError: If the PEM cannot be loaded.
    """
    context = ssl.create_default_context()
    fd, pem_path = tempfile.mkstemp(suffix=".pem")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(client_pem)
        context.load_cert_chain(certfile=pem_path)
    except (ssl.SSLError, OSError) as e:
        raise ConfigurationError(
            "Failed to load client certificate",
            context={"error": str(e)},
        ) from e
    finally:
        os.unlink(pem_path)
    return context


def _log_retry(retry_state: RetryCallState) -> None:
    """tenacity before_sleep hook."""
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.debug(
        "Retrying remote request",
        attempt=retry_state.attempt_number,
        error=str(error),
    )


class RemoteTransport:
    """Blocking client for the remote blob service.

    The underlying ``httpx.Client`` is thread-safe and shared by every
    worker of a BlobClient.
    """

    def __init__(
        self,
        endpoint: str,
        prefix: str,
        headers: Mapping[str, str] | None = None,
        auth: str | None = None,
        client_pem: bytes | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            endpoint: Base URL of the service.
            prefix: Namespace prefix for every object path.
            headers: Static headers sent with every request.
            auth: Authorization header value, e.g. "Bearer <token>".
            client_pem: PEM-encoded client certificate and key for mutual TLS.
            timeout: Per-request timeout in seconds.
            max_attempts: Attempts per request before giving up.
            http_client: Preconfigured client to use instead of building one.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        self.endpoint = endpoint.rstrip("/")
        self.prefix = prefix.strip("/")
        self.max_attempts = max_attempts

        if http_client is not None:
            self._client = http_client
        else:
            self._client = self._build_client(headers, auth, client_pem, timeout)

    @staticmethod
    def _build_client(
        headers: Mapping[str, str] | None,
        auth: str | None,
        client_pem: bytes | None,
        timeout: float,
    ) -> httpx.Client:
        default_headers = dict(headers or {})
        if auth is not None:
            if _valid_header_value(auth):
                default_headers["Authorization"] = auth
            else:
                logger.warning("Ignoring invalid authorization header value")

        verify: ssl.SSLContext | bool = True
        if client_pem is not None:
            verify = build_ssl_context(client_pem)

        return httpx.Client(
            headers=default_headers,
            verify=verify,
            http2=True,
            follow_redirects=False,
            trust_env=False,
            timeout=timeout,
        )

    def url_for(self, key: ObjectKey) -> str:
        """Full URL of an object."""
        return f"{self.endpoint}/{key.remote_path(self.prefix)}"

    def _retrying(self, *error_types: type[Exception]) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type(error_types),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_none(),
            before_sleep=_log_retry,
            reraise=True,
        )

    def _request(self, method: str, url: str, content: bytes | None = None) -> bytes:
        """Send one request and return the response body.

        Raises:
            TransportError: On connection errors, an unsendable URL or a
                non-2xx status.
        """
        # InvalidURL is not an HTTPError subclass
        try:
            response = self._client.request(method, url, content=content)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(
                f"{method} {url} failed",
                context={"url": url, "error": str(e)},
            ) from e

        if not response.is_success:
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}",
                context={"url": url, "status_code": response.status_code},
            )
        return response.content

    def put(self, key: ObjectKey, data: bytes) -> int:
        """Store ``data`` under ``key``.

        Args:
            key: Object address.
            data: Bytes to upload, sent as-is.

        Returns:
            Content hash of the stored object, or FAILED_HASH if every
            attempt failed.
        """
        url = self.url_for(key)
        try:
            self._retrying(TransportError)(self._request, "POST", url, data)
        except TransportError as e:
            logger.error(
                "Failed to save object",
                url=url,
                attempts=self.max_attempts,
                error=str(e),
            )
            return FAILED_HASH

        if key.content_hash is not None:
            return key.content_hash
        return content_hash(data)

    def _fetch_verified(self, key: ObjectKey, url: str) -> bytes:
        data = self._request("GET", url)
        expected = key.expected_hash
        if expected is not None:
            actual = content_hash(data)
            if actual != expected:
                raise IntegrityError(
                    "Fetched object does not match its content hash",
                    context={"key": key.cache_key, "expected": expected, "actual": actual},
                )
        return data

    def get(self, key: ObjectKey) -> bytes:
        """Fetch the object stored under ``key``.

        Chunk objects are verified against their content hash; index
        objects are not.

        Raises:
            TransportError: If every attempt failed to fetch the object.
            IntegrityError: If every attempt returned mismatching bytes.
        """
        url = self.url_for(key)
        return self._retrying(TransportError, IntegrityError)(
            self._fetch_verified, key, url
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> RemoteTransport:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
