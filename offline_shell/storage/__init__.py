"""
Storage Layer.

This package handles all data persistence: the namespaced response cache,
the lifecycle of its versioned namespaces, and the configuration file.
"""

from .cache import (
    CacheNamespace,
    CacheStore,
    FileCacheStore,
    MemoryCacheStore,
    create_store,
)
from .config_manager import ConfigManager
from .lifecycle import LifecycleReport, StoreLifecycleManager

__all__ = [
    "CacheNamespace",
    "CacheStore",
    "ConfigManager",
    "FileCacheStore",
    "LifecycleReport",
    "MemoryCacheStore",
    "StoreLifecycleManager",
    "create_store",
]
