"""Main application entry-point for subcount-bridge."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

import aiohttp

from .adapters import AvatarLoader, CounterApiClient
from .config import BridgeConfig, load_config
from .logging import configure_logging
from .render import ColorResolver
from .server import BridgeServer

LOGGER = logging.getLogger(__name__)


class BridgeApp:
    """Coordinates startup and shutdown of the websocket bridge.

    One HTTP client session is shared by the counter API client and the
    avatar loader. The color cache is shared by every connection.
    """

    def __init__(self, config: Optional[BridgeConfig] = None) -> None:
        self._config = config or load_config()
        self._http: Optional[aiohttp.ClientSession] = None
        self._server: Optional[BridgeServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self.resolver = ColorResolver()

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def server(self) -> Optional[BridgeServer]:
        return self._server

    async def run(self) -> None:
        self._shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGTERM, self.request_shutdown)

        LOGGER.info("subcount-bridge starting with config: %s", self._config.path)
        await self._start_services()
        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("subcount-bridge received shutdown signal")
            raise
        finally:
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(signal.SIGTERM)
            await self._stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @classmethod
    def start(cls, config: Optional[BridgeConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("subcount-bridge received shutdown signal")

    async def _start_services(self) -> None:
        timeout = aiohttp.ClientTimeout(total=self._config.api.timeout_seconds)
        self._http = aiohttp.ClientSession(timeout=timeout)

        fetcher = CounterApiClient(self._config.api, session=self._http)
        avatars = AvatarLoader(
            session=self._http, timeout=self._config.api.timeout_seconds
        )
        self._server = BridgeServer(
            self._config, fetcher=fetcher, avatars=avatars, resolver=self.resolver
        )
        await self._server.start()

    async def _stop_services(self) -> None:
        if self._server is not None:
            await self._server.stop()
            self._server = None

        if self._http is not None:
            await self._http.close()
            self._http = None

        LOGGER.info("subcount-bridge stopped")
