"""
Async HTTP fetch collaborator used by the strategies and the app shell seeding.
"""

import asyncio
import logging
import time

import aiohttp
from multidict import CIMultiDict

from offline_shell.exceptions import NetworkError
from offline_shell.models.http import CapturedResponse, RequestRecord
from offline_shell.utils.circuit_breaker import CircuitBreaker, CircuitBreakerError

log = logging.getLogger(__name__)

# Hop-by-hop headers, plus headers describing an encoding aiohttp already undid
_DROP_RESPONSE_HEADERS = frozenset(
    h.lower()
    for h in (
        "Connection",
        "Keep-Alive",
        "Proxy-Authenticate",
        "Proxy-Authorization",
        "TE",
        "Trailer",
        "Transfer-Encoding",
        "Upgrade",
        "Content-Encoding",
        "Content-Length",
    )
)
_DROP_REQUEST_HEADERS = frozenset(
    h.lower()
    for h in (
        "Connection",
        "Keep-Alive",
        "Proxy-Authorization",
        "TE",
        "Trailer",
        "Transfer-Encoding",
        "Upgrade",
        "Host",
        "Content-Length",
        "Accept-Encoding",
    )
)


class HttpFetcher:
    """
    Fetches requests over HTTP and captures the full response.

    Features:
    - Connection pooling on a shared aiohttp session
    - Total/connect timeouts (the strategies themselves never time out)
    - Circuit breaker so a dead origin fails fast instead of per-request
    - Redirects are returned to the caller, not followed

    Any received response is returned, whatever its status. Only the absence of
    a response raises NetworkError.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_connections: int = 32,
        failure_threshold: int = 5,
        recovery_timeout: float = 30,
    ):
        self.timeout = timeout
        self.max_connections = max_connections
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            trip_on=(aiohttp.ClientError, asyncio.TimeoutError, OSError),
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        async with self._session_lock:
            if self._session is None or self._session.closed:
                connector = aiohttp.TCPConnector(
                    limit=self.max_connections,
                    ttl_dns_cache=300,
                    enable_cleanup_closed=True,
                )
                self._session = aiohttp.ClientSession(
                    connector=connector,
                    timeout=aiohttp.ClientTimeout(
                        total=self.timeout, connect=min(15.0, self.timeout)
                    ),
                    auto_decompress=True,
                )
            return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            log.debug("Fetcher session closed.")

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @staticmethod
    def _forward_headers(record: RequestRecord) -> dict[str, str]:
        return {
            name: value
            for name, value in record.headers.items()
            if name.lower() not in _DROP_REQUEST_HEADERS
        }

    async def fetch(self, record: RequestRecord) -> CapturedResponse:
        """
        Performs the request described by `record`.

        Raises:
            NetworkError: On connection failure, timeout, or an open circuit.
        """
        session = await self._get_session()
        start_time = time.monotonic()
        try:
            async with self.circuit_breaker:
                async with session.request(
                    record.method,
                    record.url,
                    headers=self._forward_headers(record),
                    data=record.body or None,
                    allow_redirects=False,
                ) as r:
                    body = await r.read()
                    headers = CIMultiDict(
                        (name, value)
                        for name, value in r.headers.items()
                        if name.lower() not in _DROP_RESPONSE_HEADERS
                    )
                    response = CapturedResponse(
                        status=r.status, headers=headers, body=body, url=str(r.url)
                    )
        except CircuitBreakerError as e:
            raise NetworkError(str(e)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            log.debug(f"Fetch of {record.url} failed: {e!r}")
            raise NetworkError(f"{type(e).__name__}: {e}") from e

        duration_ms = (time.monotonic() - start_time) * 1000
        log.debug(
            f"{record.method} {record.url} -> {response.status} "
            f"({len(response.body)} bytes, {duration_ms:.0f} ms)"
        )
        return response

    __call__ = fetch
