"""
The engine facade: the explicit entry points a host adapter calls into.

    on_intercept      one per network request
    on_install        seed the app shell into the static namespace
    on_activate       evict every namespace that is not current
    on_purge_request  evict stale namespaces under a prefix
    on_message        client control messages (CLEAN_CACHE, SKIP_WAITING, SYNC)
    on_sync           background-sync trigger

No entry point raises; failures are reported through return values, the
log, and the notifier.
"""

import inspect
import logging
import time
from collections.abc import Collection
from pathlib import Path
from typing import Any

from offline_shell.core.background import BackgroundWriter
from offline_shell.core.dispatcher import Dispatcher
from offline_shell.core.events import DEFAULT_MESSAGES, EventKind, LoggingNotifier, Notifier
from offline_shell.core.strategies import (
    CacheFirstStrategy,
    Fetch,
    NetworkFirstStrategy,
    NetworkFirstWithFallbackStrategy,
)
from offline_shell.models.config import ShellConfig
from offline_shell.models.http import CapturedResponse, Category, RequestRecord
from offline_shell.models.stats import SOURCE_PASSTHROUGH, EngineStats
from offline_shell.storage.cache import CacheStore
from offline_shell.storage.lifecycle import LifecycleReport, StoreLifecycleManager
from offline_shell.utils.structured_logger import (
    LifecycleLogger,
    RequestLogger,
    StructuredLogger,
    create_structured_logger,
)

log = logging.getLogger(__name__)

MESSAGE_CLEAN_CACHE = "CLEAN_CACHE"
MESSAGE_SKIP_WAITING = "SKIP_WAITING"
MESSAGE_SYNC = "SYNC"


class OfflineEngine:
    """Wires the store, the fetch collaborator and the strategies together."""

    def __init__(
        self,
        config: ShellConfig,
        store: CacheStore,
        fetch: Fetch,
        notifier: Notifier | None = None,
        request_logger: RequestLogger | None = None,
        lifecycle_logger: LifecycleLogger | None = None,
    ):
        self.config = config
        self.store = store
        self.notifier = notifier or LoggingNotifier()
        self.stats = EngineStats()

        self._structured_log: StructuredLogger | None = None
        if request_logger is None or lifecycle_logger is None:
            log_dir = Path(config.log_dir).expanduser() if config.log_dir else None
            base, default_request_logger, default_lifecycle_logger = (
                create_structured_logger(log_dir=log_dir, enable_json=log_dir is not None)
            )
            base.set_session_context(origin=config.origin, version=config.version)
            self._structured_log = base
            request_logger = request_logger or default_request_logger
            lifecycle_logger = lifecycle_logger or default_lifecycle_logger
        self._request_log = request_logger
        self._lifecycle_log = lifecycle_logger

        self.writer = BackgroundWriter(on_complete=self._on_write_complete)

        read_namespaces = (config.static_namespace, config.runtime_namespace)
        self.dispatcher = Dispatcher(
            {
                Category.STATIC_ASSET: CacheFirstStrategy(
                    store, fetch, self.writer, config.static_namespace, read_namespaces
                ),
                Category.API_DATA: NetworkFirstStrategy(
                    store, fetch, self.writer, config.runtime_namespace, read_namespaces
                ),
                Category.DEFAULT: NetworkFirstWithFallbackStrategy(
                    store,
                    fetch,
                    self.writer,
                    config.runtime_namespace,
                    read_namespaces,
                    shell_url=config.shell_url,
                ),
            }
        )
        self.lifecycle = StoreLifecycleManager(
            store, fetch, config.static_namespace, config.seed_urls
        )

    @property
    def current_namespaces(self) -> frozenset[str]:
        return self.config.current_namespaces

    def _on_write_complete(self, succeeded: bool, task_name: str) -> None:
        self.stats.record_cache_write(succeeded)
        if not succeeded:
            self._request_log.cache_write_failed(task_name)

    # --- Request path ---

    async def on_intercept(self, request: RequestRecord | str) -> CapturedResponse | None:
        """
        Serves one intercepted request. Returns None when the request is not
        handled here (non-HTTP schemes); the host then fetches it normally.
        """
        record = RequestRecord(url=request) if isinstance(request, str) else request
        start_time = time.monotonic()

        dispatched = await self.dispatcher.dispatch(record)
        if dispatched is None:
            await self.stats.record_response(None, SOURCE_PASSTHROUGH)
            self._request_log.request_passed_through(record.url)
            return None

        category, result = dispatched
        await self.stats.record_response(category.value, result.source)
        self._request_log.request_served(
            method=record.method,
            url=record.url,
            category=category.value,
            strategy=self.dispatcher.strategies[category].name,
            source=result.source,
            status=result.response.status,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )
        return result.response

    # --- Lifecycle ---

    async def on_install(self) -> LifecycleReport:
        """Seeds the app shell. A failure is logged but does not stop startup."""
        previous = await self._stale_namespaces()
        report = await self.lifecycle.initialize_stores()

        if report.ok:
            self._lifecycle_log.install_completed(
                self.config.static_namespace, len(report.seeded)
            )
            if previous:
                log.info(
                    f"New cache version installed; {len(previous)} older "
                    "namespace(s) pending activation."
                )
                await self._emit(EventKind.UPDATE_AVAILABLE)
        else:
            self._lifecycle_log.install_failed(self.config.static_namespace, report.failures)
        return report

    async def on_activate(
        self, current_names: Collection[str] | None = None
    ) -> LifecycleReport:
        """Deletes every namespace not in `current_names` (default: this version's)."""
        names = self.current_namespaces if current_names is None else current_names
        report = await self.lifecycle.activate_stores(names)
        self._lifecycle_log.namespaces_evicted(
            report.operation, sorted(report.deleted), sorted(report.failures)
        )
        return report

    async def on_purge_request(
        self,
        prefix: str | None = None,
        current_names: Collection[str] | None = None,
    ) -> LifecycleReport:
        """Deletes stale namespaces under `prefix` (default: this app's prefix)."""
        prefix = self.config.namespace_prefix if prefix is None else prefix
        names = self.current_namespaces if current_names is None else current_names
        report = await self.lifecycle.purge_stale(prefix, names)
        self._lifecycle_log.namespaces_evicted(
            report.operation, sorted(report.deleted), sorted(report.failures)
        )
        return report

    async def _stale_namespaces(self) -> list[str]:
        try:
            existing = await self.store.names()
        except Exception as e:
            log.debug(f"Could not list namespaces: {e}")
            return []
        return [
            name
            for name in existing
            if name.startswith(self.config.namespace_prefix)
            and name not in self.current_namespaces
        ]

    # --- Messages and sync ---

    async def on_message(self, message: dict[str, Any]) -> dict[str, Any]:
        """Handles a control message from a client. Returns an acknowledgement."""
        message_type = message.get("type") if isinstance(message, dict) else None

        if message_type == MESSAGE_CLEAN_CACHE:
            report = await self.on_purge_request()
            return {"type": message_type, "ok": report.ok, "deleted": sorted(report.deleted)}

        if message_type == MESSAGE_SKIP_WAITING:
            # Activate now instead of waiting for the next start
            report = await self.on_activate()
            return {"type": message_type, "ok": report.ok, "deleted": sorted(report.deleted)}

        if message_type == MESSAGE_SYNC:
            synced = await self.on_sync(str(message.get("tag", self.config.sync_tag)))
            return {"type": message_type, "ok": synced}

        log.debug(f"Ignoring unknown message: {message!r}")
        return {"type": message_type, "ok": False, "error": "unknown message type"}

    async def on_sync(self, tag: str) -> bool:
        """
        Background-sync trigger. Only the configured tag is handled. Queued
        offline writes are not replayed yet; a completed sync is announced to
        clients.
        """
        if tag != self.config.sync_tag:
            log.debug(f"Ignoring sync for unknown tag '{tag}'.")
            return False

        log.info("Synchronizing data...")
        await self._emit(EventKind.SYNC_COMPLETE)
        return True

    async def _emit(self, kind: EventKind, **payload: Any) -> None:
        """Fire-and-forget notification; delivery problems are only logged."""
        payload.setdefault("message", DEFAULT_MESSAGES[kind])
        try:
            result = self.notifier.notify(kind, payload)
            if inspect.isawaitable(result):
                await result
            self._lifecycle_log.event_emitted(kind.value)
        except Exception as e:
            log.warning(f"Failed to deliver {kind.value} event: {e}")

    # --- Shutdown ---

    async def drain(self) -> None:
        """Waits for detached cache writes to finish."""
        await self.writer.drain()

    async def close(self) -> None:
        """Finishes pending writes and closes the JSON request log, if any."""
        await self.drain()
        if self._structured_log is not None:
            self._structured_log.close()
