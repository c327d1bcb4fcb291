"""
Reverse proxy host adapter. Stands in front of the application origin and
routes every request through the engine, so the app keeps working when the
origin is unreachable.
"""

import asyncio
import json
import logging

from aiohttp import web

from offline_shell.core.engine import OfflineEngine
from offline_shell.core.events import BroadcastNotifier
from offline_shell.exceptions import NetworkError
from offline_shell.models.config import ShellConfig
from offline_shell.models.http import CapturedResponse, RequestRecord
from offline_shell.network.fetcher import HttpFetcher
from offline_shell.storage.cache import create_store

log = logging.getLogger(__name__)

CONTROL_PREFIX = "/__shell/"
EVENT_STREAM_HEARTBEAT = 15.0

# Headers that describe the client connection, not the request
_SKIP_REQUEST_HEADERS = frozenset({"host", "connection", "content-length"})


class ShellProxy:
    """
    Plays the host runtime for the engine:

    - startup: install (seed the app shell), then activate (evict old versions)
    - every request: `on_intercept`, or plain pass-through when not intercepted
    - `POST /__shell/message`: client control messages
    - `GET /__shell/stats`: engine statistics
    - `GET /__shell/events`: server-sent events for status notifications
    - shutdown: end open event streams
    - cleanup: wait for pending cache writes, close the logs and the fetcher
    """

    def __init__(
        self,
        engine: OfflineEngine,
        fetcher: HttpFetcher,
        notifier: BroadcastNotifier | None = None,
    ):
        self.engine = engine
        self.fetcher = fetcher
        self.notifier = notifier
        self.origin = engine.config.origin

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(CONTROL_PREFIX + "message", self.handle_message)
        app.router.add_get(CONTROL_PREFIX + "stats", self.handle_stats)
        app.router.add_get(CONTROL_PREFIX + "events", self.handle_events)
        app.router.add_route("*", "/{tail:.*}", self.handle_intercept)
        app.on_startup.append(self._on_startup)
        app.on_shutdown.append(self._on_shutdown)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_startup(self, app: web.Application) -> None:
        report = await self.engine.on_install()
        if not report.ok:
            log.warning(
                "[yellow]App shell could not be cached; offline navigation will "
                "not be available until the next successful install.[/yellow]"
            )
        await self.engine.on_activate()
        log.info(f"Serving [cyan]{self.origin}[/cyan] through the offline cache.")

    async def _on_shutdown(self, app: web.Application) -> None:
        if self.notifier is not None:
            self.notifier.close()

    async def _on_cleanup(self, app: web.Application) -> None:
        await self.engine.close()
        await self.fetcher.close()

    def to_record(self, request: web.Request, body: bytes = b"") -> RequestRecord:
        """Maps an incoming proxy request onto the origin."""
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in _SKIP_REQUEST_HEADERS
        }
        return RequestRecord(
            url=self.origin + request.rel_url.path_qs,
            method=request.method,
            destination=request.headers.get("Sec-Fetch-Dest", ""),
            headers=headers,
            body=body,
        )

    @staticmethod
    def to_web_response(response: CapturedResponse) -> web.Response:
        return web.Response(
            status=response.status, headers=response.headers, body=response.body
        )

    async def handle_intercept(self, request: web.Request) -> web.StreamResponse:
        body = await request.read() if request.body_exists else b""
        record = self.to_record(request, body)

        response = await self.engine.on_intercept(record)
        if response is None:
            try:
                response = await self.fetcher.fetch(record)
            except NetworkError as e:
                raise web.HTTPBadGateway(text=str(e)) from e
        return self.to_web_response(response)

    async def handle_message(self, request: web.Request) -> web.Response:
        try:
            message = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise web.HTTPBadRequest(text="Message body must be JSON.") from None
        if not isinstance(message, dict):
            raise web.HTTPBadRequest(text="Message must be a JSON object.")

        ack = await self.engine.on_message(message)
        return web.json_response(ack)

    async def handle_stats(self, request: web.Request) -> web.Response:
        stats = self.engine.stats.to_dict()
        stats["pending_writes"] = self.engine.writer.pending
        stats["circuit"] = self.fetcher.circuit_breaker.state.value
        stats["namespaces"] = sorted(self.engine.current_namespaces)
        return web.json_response(stats)

    async def handle_events(self, request: web.Request) -> web.StreamResponse:
        if self.notifier is None:
            raise web.HTTPNotFound(text="Event stream is not enabled.")

        stream = web.StreamResponse(
            headers={"Content-Type": "text/event-stream", "Cache-Control": "no-cache"}
        )
        await stream.prepare(request)
        queue = self.notifier.subscribe()
        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        queue.get(), timeout=EVENT_STREAM_HEARTBEAT
                    )
                except asyncio.TimeoutError:
                    await stream.write(b": keep-alive\n\n")
                    continue
                if event is None:
                    break
                data = json.dumps(event, ensure_ascii=False)
                await stream.write(f"event: {event['type']}\ndata: {data}\n\n".encode())
        except ConnectionResetError:
            log.debug("Event stream client disconnected.")
        finally:
            self.notifier.unsubscribe(queue)
        return stream


def build_proxy(config: ShellConfig) -> ShellProxy:
    """Assembles store, fetcher, notifier and engine from configuration."""
    fetcher = HttpFetcher(
        timeout=config.fetch_timeout,
        max_connections=config.max_connections,
        failure_threshold=config.circuit_failure_threshold,
        recovery_timeout=config.circuit_recovery_timeout,
    )
    notifier = BroadcastNotifier()
    engine = OfflineEngine(config, create_store(config), fetcher, notifier=notifier)
    return ShellProxy(engine, fetcher, notifier)
