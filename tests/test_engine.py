"""Tests for the engine entry points."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from offline_shell.core.engine import OfflineEngine
from offline_shell.core.events import BroadcastNotifier, EventKind
from offline_shell.exceptions import CacheIOError, NetworkError
from offline_shell.models.config import ShellConfig
from offline_shell.models.http import CapturedResponse, RequestRecord
from offline_shell.models.stats import (
    SOURCE_CACHE,
    SOURCE_FALLBACK_DOCUMENT,
    SOURCE_NETWORK,
    SOURCE_PASSTHROUGH,
)

from .helpers import ORIGIN, request


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.notify = MagicMock(return_value=None)
    return notifier


@pytest.fixture
def engine(config, store, origin, notifier):
    return OfflineEngine(config, store, origin, notifier=notifier)


def serve_shell(origin):
    for path in ("/", "/index.html", "/manifest.json"):
        origin.serve(path, f"<{path}>", content_type="text/html")
    for path in ("/icon-192.png", "/icon-512.png", "/favicon.png"):
        origin.serve(path, b"\x89PNG", content_type="image/png")


class TestIntercept:
    """The per-request entry point."""

    @pytest.mark.asyncio
    async def test_static_asset_written_to_static_namespace(
        self, engine, store, origin
    ):
        origin.serve("/app.js", "js")

        response = await engine.on_intercept(request("/app.js"))
        await engine.drain()

        assert response.text() == "js"
        static = await store.open("shop-static-v2")
        assert await static.keys() == [request("/app.js").cache_key]
        assert not await store.has("shop-runtime-v2")

    @pytest.mark.asyncio
    async def test_api_and_pages_written_to_runtime_namespace(
        self, engine, store, origin
    ):
        origin.serve("/api/items", "[]")
        origin.serve("/about", "<about>")

        await engine.on_intercept(request("/api/items"))
        await engine.on_intercept(request("/about"))
        await engine.drain()

        runtime = await store.open("shop-runtime-v2")
        assert sorted(await runtime.keys()) == sorted(
            [request("/api/items").cache_key, request("/about").cache_key]
        )

    @pytest.mark.asyncio
    async def test_accepts_bare_url(self, engine, origin):
        origin.serve("/about", "<about>")

        response = await engine.on_intercept(ORIGIN + "/about")

        assert response.text() == "<about>"

    @pytest.mark.asyncio
    async def test_non_http_returns_none(self, engine, origin):
        assert await engine.on_intercept("blob:https://shop.example/1234") is None
        assert origin.calls == []
        assert engine.stats.by_source[SOURCE_PASSTHROUGH] == 1

    @pytest.mark.asyncio
    async def test_offline_navigation_after_install(self, engine, origin):
        """The installed shell serves any route once the origin goes away."""
        serve_shell(origin)
        assert (await engine.on_install()).ok
        origin.offline = True

        response = await engine.on_intercept(
            request("/products/42", destination="document")
        )

        assert response.status == 200
        assert response.text() == "</>"
        assert engine.stats.by_source[SOURCE_FALLBACK_DOCUMENT] == 1

    @pytest.mark.asyncio
    async def test_stats_track_sources_and_writes(self, engine, origin):
        origin.serve("/app.js", "js")

        await engine.on_intercept(request("/app.js"))
        await engine.drain()
        await engine.on_intercept(request("/app.js"))

        stats = engine.stats.to_dict()
        assert stats["requests_handled"] == 2
        assert stats["by_source"] == {SOURCE_NETWORK: 1, SOURCE_CACHE: 1}
        assert stats["by_category"] == {"static-asset": 2}
        assert stats["cache_writes"] == 1
        assert stats["offline_responses"] == 1

    @pytest.mark.asyncio
    async def test_write_failures_are_counted(self, engine, store, origin):
        origin.serve("/app.js", "js")
        namespace = await store.open("shop-static-v2")
        namespace.put = AsyncMock(side_effect=CacheIOError("disk full"))

        response = await engine.on_intercept(request("/app.js"))
        await engine.drain()

        assert response.text() == "js"
        assert engine.stats.cache_write_failures == 1
        assert engine.stats.cache_writes == 0


class TestLifecycle:
    """Install, activate and purge."""

    @pytest.mark.asyncio
    async def test_install_seeds_shell(self, engine, store, origin, notifier):
        serve_shell(origin)

        report = await engine.on_install()

        assert report.ok
        assert len(report.seeded) == 6
        assert len(await (await store.open("shop-static-v2")).keys()) == 6
        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_install_over_old_version_announces_update(
        self, engine, store, origin, notifier
    ):
        serve_shell(origin)
        await store.open("shop-static-v1")

        report = await engine.on_install()

        assert report.ok
        notifier.notify.assert_called_once()
        kind, payload = notifier.notify.call_args.args
        assert kind == EventKind.UPDATE_AVAILABLE
        assert payload["message"] == "Nova versão disponível! Recarregue para atualizar."

    @pytest.mark.asyncio
    async def test_failed_install_does_not_raise(self, engine, origin, notifier):
        origin.offline = True

        report = await engine.on_install()

        assert not report.ok
        assert len(report.failures) == 6
        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_activate_keeps_current_namespaces(self, engine, store):
        for name in ("shop-static-v1", "shop-static-v2", "shop-runtime-v2", "other"):
            await store.open(name)

        report = await engine.on_activate()

        assert sorted(report.deleted) == ["other", "shop-static-v1"]
        assert sorted(await store.names()) == ["shop-runtime-v2", "shop-static-v2"]

    @pytest.mark.asyncio
    async def test_purge_defaults_to_app_prefix(self, engine, store):
        for name in ("shop-static-v1", "shop-static-v2", "other"):
            await store.open(name)

        report = await engine.on_purge_request()

        assert report.deleted == ["shop-static-v1"]
        assert sorted(await store.names()) == ["other", "shop-static-v2"]


class TestMessages:
    """Client control messages and background sync."""

    @pytest.mark.asyncio
    async def test_clean_cache(self, engine, store):
        await store.open("shop-runtime-v1")

        ack = await engine.on_message({"type": "CLEAN_CACHE"})

        assert ack == {"type": "CLEAN_CACHE", "ok": True, "deleted": ["shop-runtime-v1"]}

    @pytest.mark.asyncio
    async def test_skip_waiting_activates(self, engine, store):
        await store.open("legacy")

        ack = await engine.on_message({"type": "SKIP_WAITING"})

        assert ack["ok"] is True
        assert ack["deleted"] == ["legacy"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", [{"type": "NOPE"}, {}, "CLEAN_CACHE"])
    async def test_unknown_messages_are_ignored(self, engine, store, message):
        await store.open("legacy")

        ack = await engine.on_message(message)

        assert ack["ok"] is False
        assert await store.names() == ["legacy"]

    @pytest.mark.asyncio
    async def test_sync_with_configured_tag(self, engine, notifier):
        ack = await engine.on_message({"type": "SYNC", "tag": "shop-sync"})

        assert ack == {"type": "SYNC", "ok": True}
        kind, payload = notifier.notify.call_args.args
        assert kind == EventKind.SYNC_COMPLETE
        assert payload["message"] == "Dados sincronizados com sucesso!"

    @pytest.mark.asyncio
    async def test_sync_ignores_other_tags(self, engine, notifier):
        assert await engine.on_sync("someone-else") is False
        notifier.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_notifier_failure_is_swallowed(self, engine, notifier):
        notifier.notify.side_effect = RuntimeError("no clients")

        assert await engine.on_sync("shop-sync") is True

    @pytest.mark.asyncio
    async def test_broadcast_reaches_subscribers(self, config, store, origin):
        notifier = BroadcastNotifier(max_queue_size=1)
        engine = OfflineEngine(config, store, origin, notifier=notifier)
        queue = notifier.subscribe()

        await engine.on_sync("shop-sync")
        await engine.on_sync("shop-sync")

        assert queue.qsize() == 1
        assert queue.get_nowait()["type"] == "SYNC_COMPLETE"


class TestPathOrigin:
    """An app served below a path on its host."""

    @pytest.mark.asyncio
    async def test_offline_navigation_uses_shell_seeded_under_path(
        self, store, tmp_path
    ):
        base = "https://host.example/shop"
        config = ShellConfig(origin=base, store="memory", config_path=str(tmp_path))
        online = {url: url.encode("utf-8") for url in config.seed_urls}
        offline = False

        async def fetch(record):
            if offline:
                raise NetworkError("Connection refused")
            return CapturedResponse(status=200, body=online.get(record.url, b""))

        engine = OfflineEngine(config, store, fetch)
        assert (await engine.on_install()).ok
        offline = True

        response = await engine.on_intercept(
            RequestRecord(url=base + "/products/42", destination="document")
        )

        assert response.status == 200
        assert response.body == b"https://host.example/shop/"
        assert engine.stats.by_source[SOURCE_FALLBACK_DOCUMENT] == 1


class TestRequestLog:
    """JSON lines request log enabled through `log_dir`."""

    @pytest.mark.asyncio
    async def test_writes_json_lines_when_log_dir_is_set(
        self, config, store, origin, tmp_path
    ):
        config.log_dir = str(tmp_path / "logs")
        engine = OfflineEngine(config, store, origin)
        origin.serve("/app.js", "js")

        await engine.on_intercept(request("/app.js"))
        await engine.close()

        (log_file,) = (tmp_path / "logs").glob("*.jsonl")
        entries = [json.loads(line) for line in log_file.read_text().splitlines()]
        served = [e for e in entries if e["event"] == "request_served"]
        assert served[0]["url"] == ORIGIN + "/app.js"
        assert served[0]["source"] == SOURCE_NETWORK
        assert served[0]["origin"] == ORIGIN

    @pytest.mark.asyncio
    async def test_no_log_files_by_default(self, engine, origin, tmp_path):
        origin.serve("/app.js", "js")

        await engine.on_intercept(request("/app.js"))
        await engine.close()

        assert list(tmp_path.rglob("*.jsonl")) == []
