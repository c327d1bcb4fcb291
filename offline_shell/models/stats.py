"""
Dataclass for tracking how intercepted requests were served.
"""

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

# Where a response handed back to the host came from
SOURCE_NETWORK = "network"
SOURCE_CACHE = "cache"
SOURCE_FALLBACK_DOCUMENT = "fallback_document"
SOURCE_SYNTHESIZED = "synthesized"
SOURCE_PASSTHROUGH = "passthrough"


@dataclass
class EngineStats:
    """Tracks statistics for an engine session."""

    requests_handled: int = 0
    cache_writes: int = 0
    cache_write_failures: int = 0
    by_source: Counter = field(default_factory=Counter)
    by_category: Counter = field(default_factory=Counter)
    started_at: float = field(default_factory=time.time)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def record_response(self, category: str | None, source: str) -> None:
        """Counts a response. `category` is None for pass-through requests."""
        async with self._lock:
            self.requests_handled += 1
            self.by_source[source] += 1
            if category is not None:
                self.by_category[category] += 1

    def record_cache_write(self, succeeded: bool) -> None:
        # Called from done-callbacks, which run on the loop thread between steps
        if succeeded:
            self.cache_writes += 1
        else:
            self.cache_write_failures += 1

    @property
    def offline_responses(self) -> int:
        return (
            self.by_source[SOURCE_CACHE]
            + self.by_source[SOURCE_FALLBACK_DOCUMENT]
            + self.by_source[SOURCE_SYNTHESIZED]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "requests_handled": self.requests_handled,
            "offline_responses": self.offline_responses,
            "cache_writes": self.cache_writes,
            "cache_write_failures": self.cache_write_failures,
            "by_source": dict(self.by_source),
            "by_category": dict(self.by_category),
            "uptime_seconds": round(time.time() - self.started_at, 2),
        }
