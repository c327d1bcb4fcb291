"""
Structured logging for request and cache lifecycle events.
Emits human-readable console lines and, optionally, JSON lines for analysis.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("offline_shell")
        logger.info("request_served",
                    url="https://example.com/app.js",
                    category="static-asset",
                    source="cache")
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"offline_shell_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all logs."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        """Write structured log entry to JSON file."""
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            # Rich markup would swallow bracketed event names
            self._logger.log(
                level, self._format_message(event, **context), extra={"markup": False}
            )
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()


class RequestLogger:
    """Specialized logger for intercepted request events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def request_served(
        self,
        method: str,
        url: str,
        category: str,
        strategy: str,
        source: str,
        status: int,
        duration_ms: float,
    ):
        self.logger.debug(
            "request_served",
            method=method,
            url=url,
            category=category,
            strategy=strategy,
            source=source,
            status=status,
            duration_ms=round(duration_ms, 2),
        )

    def request_passed_through(self, url: str):
        self.logger.debug("request_passed_through", url=url)

    def cache_write_failed(self, task: str):
        self.logger.warning("cache_write_failed", task=task)


class LifecycleLogger:
    """Specialized logger for cache namespace lifecycle events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def install_completed(self, namespace: str, seeded: int):
        self.logger.info("install_completed", namespace=namespace, seeded=seeded)

    def install_failed(self, namespace: str, failures: dict[str, str]):
        """Log app shell seeding failure."""
        self.logger.error(
            "install_failed",
            namespace=namespace,
            failure_count=len(failures),
            failures=failures,
        )

    def namespaces_evicted(self, operation: str, deleted: list[str], failed: list[str]):
        self.logger.info(
            "namespaces_evicted",
            operation=operation,
            deleted=deleted,
            failed=failed,
        )

    def event_emitted(self, kind: str):
        self.logger.debug("event_emitted", kind=kind)


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, RequestLogger, LifecycleLogger]:
    """
    Create all structured loggers.

    Returns:
        Tuple of (base_logger, request_logger, lifecycle_logger)
    """
    base = StructuredLogger("offline_shell", log_dir=log_dir, enable_json=enable_json)
    return base, RequestLogger(base), LifecycleLogger(base)
