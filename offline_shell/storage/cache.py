"""
Namespaced response cache. Each namespace is an isolated key/value partition
mapping a request identity to a captured response snapshot.

Two backends are provided: a file-based JSON store that survives restarts and
an in-memory store used for ephemeral sessions and tests.
"""

import asyncio
import hashlib
import json
import logging
import os
import shutil
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

import aiofiles

from offline_shell.exceptions import CacheIOError
from offline_shell.models.config import ShellConfig
from offline_shell.models.http import CapturedResponse

log = logging.getLogger(__name__)


class CacheNamespace(ABC):
    """A single named partition of the cache store."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def match(self, key: str) -> CapturedResponse | None:
        """Returns the stored response for `key`, or None."""

    @abstractmethod
    async def put(self, key: str, response: CapturedResponse) -> None:
        """Stores `response` under `key`, replacing any previous entry."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Removes one entry. Returns True if it existed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """Lists the request keys stored in this namespace."""


class CacheStore(ABC):
    """A collection of named cache namespaces."""

    @abstractmethod
    async def open(self, name: str) -> CacheNamespace:
        """Returns the namespace called `name`, creating it if needed."""

    @abstractmethod
    async def has(self, name: str) -> bool:
        """Whether a namespace called `name` exists."""

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Deletes a namespace and all its entries. Returns True if it existed."""

    @abstractmethod
    async def names(self) -> list[str]:
        """Lists existing namespace names."""

    async def match(
        self, key: str, namespaces: Iterable[str]
    ) -> CapturedResponse | None:
        """
        Looks `key` up in each of `namespaces` in order and returns the first hit.
        Namespaces that do not exist are skipped without being created.
        """
        for name in namespaces:
            if not await self.has(name):
                continue
            namespace = await self.open(name)
            response = await namespace.match(key)
            if response is not None:
                return response
        return None


def _validate_namespace_name(name: str) -> None:
    if not name or any(sep in name for sep in ("/", "\\")) or name in (".", ".."):
        raise CacheIOError(f"Invalid cache namespace name: {name!r}")


# --- In-memory backend ---


class MemoryCacheNamespace(CacheNamespace):
    def __init__(self, name: str):
        super().__init__(name)
        self._entries: dict[str, CapturedResponse] = {}

    async def match(self, key: str) -> CapturedResponse | None:
        response = self._entries.get(key)
        return response.clone() if response is not None else None

    async def put(self, key: str, response: CapturedResponse) -> None:
        self._entries[key] = response.clone()

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def keys(self) -> list[str]:
        return list(self._entries)


class MemoryCacheStore(CacheStore):
    """Keeps every namespace in process memory. Lost on restart."""

    def __init__(self):
        self._namespaces: dict[str, MemoryCacheNamespace] = {}

    async def open(self, name: str) -> MemoryCacheNamespace:
        _validate_namespace_name(name)
        if name not in self._namespaces:
            self._namespaces[name] = MemoryCacheNamespace(name)
        return self._namespaces[name]

    async def has(self, name: str) -> bool:
        return name in self._namespaces

    async def delete(self, name: str) -> bool:
        return self._namespaces.pop(name, None) is not None

    async def names(self) -> list[str]:
        return list(self._namespaces)


# --- File backend ---


class FileCacheNamespace(CacheNamespace):
    """
    One directory per namespace, one JSON file per entry. Writes go to a
    temporary file first and are then renamed into place, so concurrent writers
    of the same key never interleave: the last rename wins.
    """

    MAX_CACHE_VALUE_KB = 5 * 1024

    def __init__(self, name: str, directory: Path):
        super().__init__(name)
        self.directory = directory

    def _get_entry_path(self, key: str) -> Path:
        """Generates a safe filename for a given cache key."""
        hashed_key = hashlib.md5(key.encode("utf-8")).hexdigest()  # noqa: S324
        return self.directory / f"{hashed_key}.json"

    async def match(self, key: str) -> CapturedResponse | None:
        entry_path = self._get_entry_path(key)
        try:
            async with aiofiles.open(entry_path, encoding="utf-8") as f:
                data = json.loads(await f.read())
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, OSError) as e:
            raise CacheIOError(f"Cache read failed for key '{key}': {e}") from e

        if data.get("key") != key:
            # md5 collision or a foreign file; treat as a miss
            return None
        try:
            return CapturedResponse.from_dict(data["response"])
        except (KeyError, TypeError, ValueError) as e:
            raise CacheIOError(f"Corrupt cache entry for key '{key}': {e}") from e

    async def put(self, key: str, response: CapturedResponse) -> None:
        entry_path = self._get_entry_path(key)
        payload = {
            "key": key,
            "timestamp": time.time(),
            "response": response.to_dict(),
        }
        serialized_payload = json.dumps(payload)
        size_kb = len(serialized_payload) / 1024
        if size_kb > self.MAX_CACHE_VALUE_KB:
            raise CacheIOError(
                f"Cache value for key '{key}' is too large ({size_kb:.1f} KB)."
            )

        tmp_path = entry_path.with_suffix(f".{os.getpid()}.{id(payload)}.tmp")
        try:
            await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(serialized_payload)
            await asyncio.to_thread(os.replace, tmp_path, entry_path)
        except OSError as e:
            await asyncio.to_thread(tmp_path.unlink, missing_ok=True)
            raise CacheIOError(f"Cache write failed for key '{key}': {e}") from e

    async def delete(self, key: str) -> bool:
        entry_path = self._get_entry_path(key)
        try:
            await asyncio.to_thread(entry_path.unlink)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(f"Cache delete failed for key '{key}': {e}") from e

    async def keys(self) -> list[str]:
        return await asyncio.to_thread(self._read_keys)

    def _read_keys(self) -> list[str]:
        keys = []
        for entry_file in self.directory.glob("*.json"):
            try:
                with open(entry_file, encoding="utf-8") as f:
                    keys.append(json.load(f)["key"])
            except (json.JSONDecodeError, KeyError, OSError) as e:
                log.debug(f"Skipping unreadable cache file {entry_file.name}: {e}")
        return sorted(keys)


class FileCacheStore(CacheStore):
    """Persists namespaces as subdirectories of `root_dir`."""

    def __init__(self, root_dir: Path):
        self.root_dir = root_dir
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _namespace_dir(self, name: str) -> Path:
        _validate_namespace_name(name)
        return self.root_dir / name

    async def open(self, name: str) -> FileCacheNamespace:
        directory = self._namespace_dir(name)
        try:
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(f"Failed to create namespace '{name}': {e}") from e
        return FileCacheNamespace(name, directory)

    async def has(self, name: str) -> bool:
        return await asyncio.to_thread(self._namespace_dir(name).is_dir)

    async def delete(self, name: str) -> bool:
        directory = self._namespace_dir(name)
        if not await asyncio.to_thread(directory.is_dir):
            return False
        try:
            await asyncio.to_thread(shutil.rmtree, directory)
        except OSError as e:
            raise CacheIOError(f"Failed to delete namespace '{name}': {e}") from e
        return True

    async def names(self) -> list[str]:
        def _list() -> list[str]:
            return sorted(p.name for p in self.root_dir.iterdir() if p.is_dir())

        try:
            return await asyncio.to_thread(_list)
        except OSError as e:
            raise CacheIOError(f"Failed to list namespaces: {e}") from e


def create_store(config: ShellConfig) -> CacheStore:
    """Builds the cache store backend selected in the configuration."""
    if config.store == "memory":
        return MemoryCacheStore()
    root = Path(config.cache_dir) if config.cache_dir else Path(config.config_path) / "cache"
    return FileCacheStore(root.expanduser())
