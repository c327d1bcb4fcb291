"""Tests for the cache store backends."""

import json

import pytest

from offline_shell.exceptions import CacheIOError
from offline_shell.models.http import CapturedResponse
from offline_shell.storage.cache import (
    FileCacheStore,
    MemoryCacheStore,
    create_store,
)

KEY = "GET https://shop.example/app.js"


def snapshot(body=b"console.log(1)", status=200):
    return CapturedResponse(
        status=status,
        headers={"Content-Type": "application/javascript", "ETag": '"abc"'},
        body=body,
        url="https://shop.example/app.js",
    )


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryCacheStore()
    return FileCacheStore(tmp_path / "cache")


class TestNamespaces:
    """Behaviour shared by both backends."""

    @pytest.mark.asyncio
    async def test_open_creates_namespace(self, any_store):
        assert not await any_store.has("shop-static-v1")

        await any_store.open("shop-static-v1")

        assert await any_store.has("shop-static-v1")
        assert await any_store.names() == ["shop-static-v1"]

    @pytest.mark.asyncio
    async def test_put_and_match(self, any_store):
        namespace = await any_store.open("shop-static-v1")
        await namespace.put(KEY, snapshot())

        cached = await namespace.match(KEY)

        assert cached == snapshot()
        assert await namespace.match("GET https://shop.example/other.js") is None

    @pytest.mark.asyncio
    async def test_put_replaces_entry(self, any_store):
        namespace = await any_store.open("shop-static-v1")
        await namespace.put(KEY, snapshot(b"old"))
        await namespace.put(KEY, snapshot(b"new"))

        assert (await namespace.match(KEY)).body == b"new"
        assert await namespace.keys() == [KEY]

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self, any_store):
        static = await any_store.open("shop-static-v1")
        runtime = await any_store.open("shop-runtime-v1")
        await static.put(KEY, snapshot())

        assert await runtime.match(KEY) is None

    @pytest.mark.asyncio
    async def test_delete_namespace(self, any_store):
        namespace = await any_store.open("shop-static-v1")
        await namespace.put(KEY, snapshot())

        assert await any_store.delete("shop-static-v1") is True
        assert await any_store.delete("shop-static-v1") is False
        assert not await any_store.has("shop-static-v1")

    @pytest.mark.asyncio
    async def test_delete_entry(self, any_store):
        namespace = await any_store.open("shop-static-v1")
        await namespace.put(KEY, snapshot())

        assert await namespace.delete(KEY) is True
        assert await namespace.delete(KEY) is False
        assert await namespace.keys() == []

    @pytest.mark.asyncio
    async def test_store_match_checks_namespaces_in_order(self, any_store):
        static = await any_store.open("shop-static-v1")
        runtime = await any_store.open("shop-runtime-v1")
        await static.put(KEY, snapshot(b"static"))
        await runtime.put(KEY, snapshot(b"runtime"))

        first = await any_store.match(KEY, ["shop-static-v1", "shop-runtime-v1"])
        only_runtime = await any_store.match(KEY, ["missing", "shop-runtime-v1"])

        assert first.body == b"static"
        assert only_runtime.body == b"runtime"

    @pytest.mark.asyncio
    async def test_store_match_does_not_create_namespaces(self, any_store):
        assert await any_store.match(KEY, ["shop-static-v1"]) is None
        assert await any_store.names() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "..", "a/b", "a\\b"])
    async def test_rejects_unsafe_names(self, any_store, name):
        with pytest.raises(CacheIOError):
            await any_store.open(name)


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_entries_are_snapshots(self):
        store = MemoryCacheStore()
        namespace = await store.open("ns")
        original = snapshot()
        await namespace.put(KEY, original)

        original.headers["X-Late"] = "1"
        (await namespace.match(KEY)).headers["X-Other"] = "1"

        assert list((await namespace.match(KEY)).headers.items()) == [
            ("Content-Type", "application/javascript"),
            ("ETag", '"abc"'),
        ]


class TestFileStore:
    """File backend specifics."""

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        first = FileCacheStore(tmp_path)
        await (await first.open("ns")).put(KEY, snapshot(b"\x00\xffbinary"))

        second = FileCacheStore(tmp_path)

        assert await second.names() == ["ns"]
        assert (await (await second.open("ns")).match(KEY)).body == b"\x00\xffbinary"

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, tmp_path):
        store = FileCacheStore(tmp_path)
        namespace = await store.open("ns")
        await namespace.put(KEY, snapshot())

        files = list((tmp_path / "ns").iterdir())

        assert len(files) == 1
        assert files[0].suffix == ".json"

    @pytest.mark.asyncio
    async def test_corrupt_entry_raises_cache_error(self, tmp_path):
        store = FileCacheStore(tmp_path)
        namespace = await store.open("ns")
        await namespace.put(KEY, snapshot())
        entry = next((tmp_path / "ns").iterdir())
        entry.write_text("{not json", encoding="utf-8")

        with pytest.raises(CacheIOError):
            await namespace.match(KEY)

    @pytest.mark.asyncio
    async def test_foreign_key_is_a_miss(self, tmp_path):
        store = FileCacheStore(tmp_path)
        namespace = await store.open("ns")
        await namespace.put(KEY, snapshot())
        entry = next((tmp_path / "ns").iterdir())
        data = json.loads(entry.read_text(encoding="utf-8"))
        data["key"] = "GET https://elsewhere.example/"
        entry.write_text(json.dumps(data), encoding="utf-8")

        assert await namespace.match(KEY) is None

    @pytest.mark.asyncio
    async def test_repeated_headers_survive_storage(self, tmp_path):
        """Every Set-Cookie is replayed, not just the last one."""
        store = FileCacheStore(tmp_path)
        namespace = await store.open("ns")
        response = CapturedResponse(
            status=200,
            headers=[
                ("Content-Type", "text/html"),
                ("Set-Cookie", "a=1; Path=/"),
                ("Set-Cookie", "b=2; Path=/"),
            ],
            body=b"<html>",
        )
        await namespace.put(KEY, response)

        cached = await namespace.match(KEY)

        assert cached.headers.getall("set-cookie") == ["a=1; Path=/", "b=2; Path=/"]
        assert cached.content_type == "text/html"

    @pytest.mark.asyncio
    async def test_reads_entries_with_mapping_headers(self, tmp_path):
        store = FileCacheStore(tmp_path)
        namespace = await store.open("ns")
        await namespace.put(KEY, snapshot())
        entry = next((tmp_path / "ns").iterdir())
        data = json.loads(entry.read_text(encoding="utf-8"))
        data["response"]["headers"] = {"Content-Type": "application/javascript"}
        entry.write_text(json.dumps(data), encoding="utf-8")

        cached = await namespace.match(KEY)

        assert cached.content_type == "application/javascript"

    @pytest.mark.asyncio
    async def test_oversized_value_is_rejected(self, tmp_path):
        store = FileCacheStore(tmp_path)
        namespace = await store.open("ns")

        with pytest.raises(CacheIOError, match="too large"):
            await namespace.put(KEY, snapshot(b"x" * (6 * 1024 * 1024)))


class TestCreateStore:
    def test_memory_backend(self, config):
        assert isinstance(create_store(config), MemoryCacheStore)

    def test_file_backend_defaults_under_config_dir(self, config, tmp_path):
        config.store = "file"

        store = create_store(config)

        assert isinstance(store, FileCacheStore)
        assert store.root_dir == tmp_path / "cache"

    def test_file_backend_custom_dir(self, config, tmp_path):
        config.store = "file"
        config.cache_dir = str(tmp_path / "elsewhere")

        store = create_store(config)

        assert store.root_dir == tmp_path / "elsewhere"
