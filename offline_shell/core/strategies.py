"""
Caching strategies. Each one is an async policy over a cache store and a
network fetch, and always resolves to a response.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from offline_shell.core import responses
from offline_shell.core.background import BackgroundWriter
from offline_shell.exceptions import CacheIOError, NetworkError
from offline_shell.models.http import CapturedResponse, RequestRecord, request_key
from offline_shell.models.stats import (
    SOURCE_CACHE,
    SOURCE_FALLBACK_DOCUMENT,
    SOURCE_NETWORK,
    SOURCE_SYNTHESIZED,
)
from offline_shell.storage.cache import CacheStore

log = logging.getLogger(__name__)

Fetch = Callable[[RequestRecord], Awaitable[CapturedResponse]]

CACHEABLE_METHODS = ("GET",)


@dataclass(frozen=True)
class StrategyResult:
    """A response together with where it came from."""

    response: CapturedResponse
    source: str


class Strategy(ABC):
    """
    Shared plumbing for the strategies.

    Args:
        store: The cache store to read from and write into.
        fetch: The network collaborator. Raises NetworkError when no response
            could be obtained; non-ok statuses are returned normally.
        writer: Where detached cache writes are scheduled.
        write_namespace: Namespace that successful network responses go into.
        read_namespaces: Namespaces consulted, in order, on lookup.
    """

    name = "strategy"

    def __init__(
        self,
        store: CacheStore,
        fetch: Fetch,
        writer: BackgroundWriter,
        write_namespace: str,
        read_namespaces: Sequence[str],
    ):
        self.store = store
        self._fetch = fetch
        self._writer = writer
        self.write_namespace = write_namespace
        self.read_namespaces = tuple(read_namespaces)

    @abstractmethod
    async def respond(self, record: RequestRecord) -> StrategyResult:
        """Produces a response for `record`. Never raises."""

    async def _lookup(self, key: str) -> CapturedResponse | None:
        """Cache lookup where a read failure counts as a miss."""
        try:
            return await self.store.match(key, self.read_namespaces)
        except CacheIOError as e:
            log.warning(f"Cache read failed, treating as miss: {e}")
            return None

    async def _lookup_record(self, record: RequestRecord) -> CapturedResponse | None:
        if record.method.upper() not in CACHEABLE_METHODS:
            return None
        return await self._lookup(record.cache_key)

    def _write_back(self, record: RequestRecord, response: CapturedResponse) -> None:
        """Schedules a detached write of a clone of `response`."""
        if record.method.upper() not in CACHEABLE_METHODS:
            return
        snapshot = response.clone()
        self._writer.schedule(
            self._put(record.cache_key, snapshot),
            description=f"cache-put {self.write_namespace} {record.cache_key}",
        )

    async def _put(self, key: str, response: CapturedResponse) -> None:
        namespace = await self.store.open(self.write_namespace)
        await namespace.put(key, response)

    async def _fetch_and_store(self, record: RequestRecord) -> CapturedResponse:
        """Fetches from the network and caches ok responses. Raises NetworkError."""
        response = await self._fetch(record)
        if response.ok:
            self._write_back(record, response)
        return response


class CacheFirstStrategy(Strategy):
    """Serves from cache when possible; only a miss touches the network."""

    name = "cache-first"

    async def respond(self, record: RequestRecord) -> StrategyResult:
        cached = await self._lookup_record(record)
        if cached is not None:
            return StrategyResult(cached, SOURCE_CACHE)

        try:
            response = await self._fetch_and_store(record)
        except NetworkError as e:
            log.info(f"Cache-first fetch failed for {record.url}: {e}")
            return StrategyResult(responses.asset_unavailable(), SOURCE_SYNTHESIZED)

        # Non-ok responses are handed back untouched and not cached
        return StrategyResult(response, SOURCE_NETWORK)


class NetworkFirstStrategy(Strategy):
    """Prefers fresh data; the cache is only consulted when the network throws."""

    name = "network-first"

    async def respond(self, record: RequestRecord) -> StrategyResult:
        try:
            response = await self._fetch_and_store(record)
            return StrategyResult(response, SOURCE_NETWORK)
        except NetworkError as e:
            log.info(f"Network unavailable, trying cache for: {record.url} ({e})")

        cached = await self._lookup_record(record)
        if cached is not None:
            return StrategyResult(cached, SOURCE_CACHE)
        return StrategyResult(responses.data_unavailable(), SOURCE_SYNTHESIZED)


class NetworkFirstWithFallbackStrategy(Strategy):
    """
    Network-first for documents and everything unclassified. When offline and
    a page navigation has no exact cache entry, the cached root document (the
    single-page-app shell) is served instead so client-side routing still works.

    `shell_url` is where the shell was seeded. Without it the root of the
    request's own origin is used.
    """

    name = "network-first-fallback"

    def __init__(
        self,
        store: CacheStore,
        fetch: Fetch,
        writer: BackgroundWriter,
        write_namespace: str,
        read_namespaces: Sequence[str],
        shell_url: str | None = None,
    ):
        super().__init__(store, fetch, writer, write_namespace, read_namespaces)
        self.shell_url = shell_url

    async def respond(self, record: RequestRecord) -> StrategyResult:
        try:
            response = await self._fetch_and_store(record)
            return StrategyResult(response, SOURCE_NETWORK)
        except NetworkError as e:
            log.info(f"Network unavailable, trying cache for: {record.url} ({e})")

        cached = await self._lookup_record(record)
        if cached is not None:
            return StrategyResult(cached, SOURCE_CACHE)

        if record.is_navigation:
            shell_url = self.shell_url or record.root_url
            shell = await self._lookup(request_key("GET", shell_url))
            if shell is not None:
                return StrategyResult(shell, SOURCE_FALLBACK_DOCUMENT)
            log.debug(f"No cached app shell at {shell_url} for offline fallback.")

        return StrategyResult(responses.content_unavailable(), SOURCE_SYNTHESIZED)
