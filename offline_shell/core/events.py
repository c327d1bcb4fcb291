"""
Status events reported to clients, and the notifier sinks that carry them.
"""

import asyncio
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import Any, Protocol

log = logging.getLogger(__name__)


class EventKind(str, Enum):
    UPDATE_AVAILABLE = "UPDATE_AVAILABLE"
    SYNC_COMPLETE = "SYNC_COMPLETE"


DEFAULT_MESSAGES = {
    EventKind.UPDATE_AVAILABLE: "Nova versão disponível! Recarregue para atualizar.",
    EventKind.SYNC_COMPLETE: "Dados sincronizados com sucesso!",
}


class Notifier(Protocol):
    """Anything that can deliver an event to however many clients exist."""

    def notify(self, kind: EventKind, payload: dict[str, Any]) -> Awaitable[None] | None:
        ...


class LoggingNotifier:
    """Writes events to the log. Used when no client channel is attached."""

    def notify(self, kind: EventKind, payload: dict[str, Any]) -> None:
        log.info(f"[cyan]Event {kind.value}:[/cyan] {payload.get('message', '')}")


class BroadcastNotifier:
    """
    Fans events out to subscriber queues. Slow subscribers drop the oldest
    event rather than blocking the sender.
    """

    def __init__(self, max_queue_size: int = 32):
        self._max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def close(self) -> None:
        """Wakes every subscriber with None so open streams can finish."""
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(None)

    def notify(self, kind: EventKind, payload: dict[str, Any]) -> None:
        message = {"type": kind.value, **payload}
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(message)
        log.debug(f"Broadcast {kind.value} to {len(self._subscribers)} subscribers.")
