"""
Circuit breaker that stops hammering an unreachable origin. While open, fetches
fail immediately, which sends requests straight to their cache fallback.
"""

import asyncio
import logging
import time
from enum import Enum

log = logging.getLogger(__name__)


class CircuitState(Enum):
    """States of the circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised instead of calling the origin while the circuit is open."""


class CircuitBreaker:
    """
    Tracks consecutive transport failures against one origin.

    Only exceptions listed in `trip_on` count as failures. A received response,
    whatever its status code, proves the origin is reachable and counts as a
    success.

    States:
    - CLOSED: requests go to the origin
    - OPEN: requests fail fast with CircuitBreakerError
    - HALF_OPEN: after `recovery_timeout`, requests reach the origin again;
      `success_threshold` successes close the circuit, one failure re-opens it
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30,
        success_threshold: int = 1,
        trip_on: tuple[type[BaseException], ...] = (Exception,),
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self.trip_on = trip_on

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()
        self._success_count = 0

    async def _on_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            if self._state != CircuitState.HALF_OPEN:
                return
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                log.info("[green]✓ Origin reachable again, circuit closed.[/green]")
                self._state = CircuitState.CLOSED
                self._success_count = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                log.warning("[yellow]Origin still unreachable, circuit re-opened.[/yellow]")
                self._open()
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                log.error(
                    f"[red]✗ Origin circuit opened after {self._failure_count} "
                    f"consecutive failures; serving from cache for "
                    f"{self.recovery_timeout}s.[/red]"
                )
                self._open()

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None

    async def __aenter__(self):
        async with self._lock:
            if self._state == CircuitState.OPEN and self._opened_at is not None:
                elapsed = time.monotonic() - self._opened_at
                if elapsed >= self.recovery_timeout:
                    log.info(
                        f"[yellow]Origin circuit half-open, retrying after "
                        f"{elapsed:.0f}s[/yellow]"
                    )
                    self._state = CircuitState.HALF_OPEN
                    self._success_count = 0
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerError(
                    f"Origin circuit is open after {self._failure_count} failures."
                )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            await self._on_success()
        elif issubclass(exc_type, self.trip_on):
            await self._on_failure()
        return False
