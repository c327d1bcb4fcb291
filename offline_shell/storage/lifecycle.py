"""
Creates, seeds and evicts versioned cache namespaces.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection, Iterable
from dataclasses import dataclass, field

from offline_shell.models.http import CapturedResponse, RequestRecord
from offline_shell.storage.cache import CacheStore

log = logging.getLogger(__name__)

Fetch = Callable[[RequestRecord], Awaitable[CapturedResponse]]


@dataclass
class LifecycleReport:
    """Aggregate outcome of a lifecycle operation."""

    operation: str
    deleted: list[str] = field(default_factory=list)
    seeded: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class StoreLifecycleManager:
    """
    Owns creation and eviction of cache namespaces. The set of current
    namespaces is always passed in explicitly; nothing here knows about
    version strings.
    """

    def __init__(
        self,
        store: CacheStore,
        fetch: Fetch,
        static_namespace: str,
        seed_urls: Iterable[str],
    ):
        self.store = store
        self._fetch = fetch
        self.static_namespace = static_namespace
        self.seed_urls = list(seed_urls)

    async def initialize_stores(self) -> LifecycleReport:
        """
        Creates the static namespace and fills it with the seed manifest.

        The seed set is all-or-nothing: every seed is fetched first, and entries
        are only written once all of them came back ok. A failed report means
        the app shell is not guaranteed offline.
        """
        report = LifecycleReport(operation="install")
        try:
            namespace = await self.store.open(self.static_namespace)
        except Exception as e:
            report.failures[self.static_namespace] = str(e)
            return report

        records = [RequestRecord(url=url) for url in self.seed_urls]
        results = await asyncio.gather(
            *(self._fetch(record) for record in records), return_exceptions=True
        )

        fetched: list[tuple[RequestRecord, CapturedResponse]] = []
        for record, result in zip(records, results):
            if isinstance(result, BaseException):
                report.failures[record.url] = f"fetch failed: {result}"
            elif not result.ok:
                report.failures[record.url] = f"HTTP {result.status}"
            else:
                fetched.append((record, result))

        if report.failures:
            log.warning(
                f"[yellow]App shell seeding failed for {len(report.failures)} of "
                f"{len(records)} resources; nothing was cached.[/yellow]"
            )
            return report

        put_results = await asyncio.gather(
            *(namespace.put(record.cache_key, response) for record, response in fetched),
            return_exceptions=True,
        )
        for (record, _), result in zip(fetched, put_results):
            if isinstance(result, BaseException):
                report.failures[record.url] = f"store failed: {result}"
            else:
                report.seeded.append(record.url)

        if report.ok:
            log.info(
                f"Seeded {len(report.seeded)} app shell resources into "
                f"'{self.static_namespace}'."
            )
        return report

    async def activate_stores(self, current_names: Collection[str]) -> LifecycleReport:
        """Deletes every namespace whose name is not in `current_names`."""
        report = LifecycleReport(operation="activate")
        try:
            existing = await self.store.names()
        except Exception as e:
            report.failures["*"] = str(e)
            return report

        stale = [name for name in existing if name not in current_names]
        await self._delete_all(stale, report)
        return report

    async def purge_stale(
        self, prefix: str, current_names: Collection[str]
    ) -> LifecycleReport:
        """Deletes namespaces that start with `prefix` and are not current."""
        report = LifecycleReport(operation="purge")
        try:
            existing = await self.store.names()
        except Exception as e:
            report.failures["*"] = str(e)
            return report

        stale = [
            name
            for name in existing
            if name.startswith(prefix) and name not in current_names
        ]
        await self._delete_all(stale, report)
        return report

    async def _delete_all(self, names: list[str], report: LifecycleReport) -> None:
        """Deletes all `names` concurrently; one failure does not stop the others."""
        if not names:
            return

        async def delete_one(name: str) -> None:
            try:
                await self.store.delete(name)
                log.info(f"Removed old cache namespace: {name}")
                report.deleted.append(name)
            except Exception as e:
                log.warning(f"Failed to remove cache namespace '{name}': {e}")
                report.failures[name] = str(e)

        await asyncio.gather(*(delete_one(name) for name in names))
