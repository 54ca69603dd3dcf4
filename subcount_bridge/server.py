"""Websocket server accepting game client connections."""

from __future__ import annotations

import contextlib
import logging
from typing import Dict, Optional

from aiohttp import web

from .config import BridgeConfig
from .dispatcher import AvatarSource, ChannelFetcher
from .render import ColorResolver
from .session import ConnectionSession

LOGGER = logging.getLogger(__name__)


class BridgeServer:
    """Serves the game websocket on ``/`` and a status probe on ``/healthz``."""

    def __init__(
        self,
        config: BridgeConfig,
        *,
        fetcher: ChannelFetcher,
        avatars: AvatarSource,
        resolver: Optional[ColorResolver] = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._avatars = avatars
        self.resolver = resolver or ColorResolver()
        self._sessions: Dict[int, ConnectionSession] = {}
        self._total_connections = 0
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    @property
    def sessions(self) -> Dict[int, ConnectionSession]:
        return dict(self._sessions)

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/", self._handle_websocket)
        app.router.add_get("/healthz", self._handle_health)
        return app

    async def start(self) -> None:
        host = self._config.server.host
        port = self._config.server.port

        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host, port)
        await self._site.start()
        LOGGER.info("Bridge listening on ws://%s:%s", host, port)

    async def stop(self) -> None:
        for session in list(self._sessions.values()):
            await session.close()
        self._sessions.clear()

        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    def snapshot(self) -> Dict[str, object]:
        return {
            "status": "ok",
            "connections": len(self._sessions),
            "totalConnections": self._total_connections,
            "queued": sum(s.channel.queue_length for s in self._sessions.values()),
            "liveSessions": sum(
                1 for s in self._sessions.values() if s.dispatcher.live_active
            ),
            "colorCacheSize": self.resolver.cache_size,
        }

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response(self.snapshot())

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        session = ConnectionSession(
            ws,
            config=self._config,
            fetcher=self._fetcher,
            avatars=self._avatars,
            resolver=self.resolver,
        )
        self._sessions[session.id] = session
        self._total_connections += 1
        LOGGER.info("Client connected from %s (session %d)", request.remote, session.id)

        try:
            await session.run()
        except Exception:
            LOGGER.exception("Session %d failed", session.id)
        finally:
            self._sessions.pop(session.id, None)
            await session.close()
        return ws
