# Test Media Source
# Copyright (C) 2024-2026 Test Media Source contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""
SourceBase: HTTP + WebSocket plumbing for a media source service.

Subclass contract:

    class MySource(SourceBase):
        id   = "testmedia"     # source ID
        name = "Test Media"    # display name
        port = 8780            # HTTP port

        async def handle_command(self, cmd, data) -> dict:
            '''Your logic.  Return a dict merged into the response.'''

Built-in routes:
    GET  /status     handle_status()
    POST /command    {"command": ..., ...} → handle_command(cmd, data)
    GET  /ws         push-only WebSocket feed fed by broadcast()

Optional overrides:
    on_start()              called after HTTP server is up
    on_stop()               called during shutdown
    handle_status()         return dict for GET /status
    on_ws_connect(ws)       send initial state to a new client
    add_routes(app)         add extra aiohttp routes
"""

import asyncio
import json
import logging
import signal

from aiohttp import web

log = logging.getLogger(__name__)


class SourceBase:
    # ── Subclass must set these ──
    id: str = ""
    name: str = ""
    port: int = 0

    def __init__(self):
        self._runner: web.AppRunner | None = None
        self._ws_clients: set[web.WebSocketResponse] = set()

    # ── WebSocket broadcasting ──

    async def broadcast(self, event_type: str, data):
        """Push ``{"type": event_type, "data": data}`` to every WebSocket client."""
        if not self._ws_clients:
            return

        message = json.dumps({"type": event_type, "data": data})
        disconnected = set()
        for ws in self._ws_clients:
            try:
                await ws.send_str(message)
            except Exception:
                disconnected.add(ws)
        self._ws_clients -= disconnected

        log.debug("Broadcast %s to %d clients", event_type, len(self._ws_clients))

    async def send_json(self, ws: web.WebSocketResponse, event_type: str, data):
        """Send one message to a single client."""
        try:
            await ws.send_json({"type": event_type, "data": data})
        except Exception as e:
            log.error("Error sending %s: %s", event_type, e)

    # ── HTTP server ──

    def build_app(self) -> web.Application:
        """Create the aiohttp app with the built-in and subclass routes."""
        app = web.Application()
        app.router.add_get("/status", self._handle_status_route)
        app.router.add_post("/command", self._handle_command_route)
        app.router.add_options("/command", self._handle_cors)
        app.router.add_get("/ws", self._handle_ws)

        # Let subclass add extra routes
        self.add_routes(app)
        return app

    async def start(self):
        """Build the app, start listening, then call on_start()."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        log.info("%s: HTTP + WebSocket on port %d", self.name, self.port)

        await self.on_start()

    async def stop(self):
        """Shutdown hook; override on_stop() for cleanup."""
        await self.on_stop()
        for ws in list(self._ws_clients):
            await ws.close()
        self._ws_clients.clear()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def run(self):
        """Convenience entry-point: start + wait for signal + stop."""
        await self.start()
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    # ── CORS ──

    def _cors_headers(self):
        return {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
        }

    async def _handle_cors(self, request):
        return web.Response(headers=self._cors_headers())

    def json_response(self, data, status: int = 200) -> web.Response:
        return web.json_response(data, status=status, headers=self._cors_headers())

    # ── Route handlers (delegate to subclass) ──

    async def _handle_status_route(self, request):
        result = await self.handle_status()
        return self.json_response(result)

    async def _handle_command_route(self, request):
        try:
            data = await request.json()
            cmd = data.get("command", "")
            result = await self.handle_command(cmd, data)
            resp = {"status": "ok", "command": cmd}
            if result:
                resp.update(result)
            status = 400 if resp.get("status") == "error" else 200
            return self.json_response(resp, status=status)

        except Exception as e:
            log.exception("Command error")
            return self.json_response({"status": "error", "message": str(e)}, status=500)

    async def _handle_ws(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._ws_clients.add(ws)
        log.info("WebSocket client connected (%d total)", len(self._ws_clients))

        try:
            await self.on_ws_connect(ws)
            # Push-only, incoming messages are ignored
            async for msg in ws:
                pass
        finally:
            self._ws_clients.discard(ws)
            log.info("WebSocket client disconnected (%d remaining)",
                     len(self._ws_clients))

        return ws

    # ── Subclass hooks (override as needed) ──

    async def on_start(self):
        """Called after HTTP server is up."""

    async def on_stop(self):
        """Called during shutdown."""

    async def on_ws_connect(self, ws: web.WebSocketResponse):
        """Called when a new WebSocket client connects."""

    async def handle_status(self) -> dict:
        """Return status dict for GET /status."""
        return {"source": self.id, "name": self.name}

    def add_routes(self, app: web.Application):
        """Add extra aiohttp routes to the app."""

    async def handle_command(self, cmd: str, data: dict) -> dict:
        """Handle a command. Must be implemented by subclass."""
        raise NotImplementedError
