"""Shared fixtures for offline-shell tests."""

import pytest

from offline_shell.core.background import BackgroundWriter
from offline_shell.models.config import ShellConfig
from offline_shell.storage.cache import MemoryCacheStore

from .helpers import ORIGIN, FakeOrigin


@pytest.fixture
def origin():
    """A fake origin that is online and serves nothing until configured."""
    return FakeOrigin()


@pytest.fixture
def store():
    return MemoryCacheStore()


@pytest.fixture
def writer():
    return BackgroundWriter()


@pytest.fixture
def config(tmp_path):
    """Configuration for an app called 'shop', cache version 2."""
    return ShellConfig(
        origin=ORIGIN,
        cache_prefix="shop",
        version="2",
        store="memory",
        config_path=str(tmp_path),
    )
