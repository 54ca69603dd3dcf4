"""One connected game client."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from typing import Any, Optional, Set

import aiohttp
from aiohttp import web

from .channel import ChannelError, CommandChannel
from .config import BridgeConfig
from .constants import PLAYER_MESSAGE_EVENT
from .dispatcher import AvatarSource, ChannelFetcher, CommandDispatcher
from .protocol import (
    CommandResponse,
    PlayerMessage,
    ProtocolDecodeError,
    SubscribeRequest,
    decode_inbound,
)
from .render import ColorResolver

LOGGER = logging.getLogger(__name__)

_SESSION_IDS = itertools.count(1)

WELCOME_MESSAGE = "Subscriber display bot connected! Type {prefix}help for commands."


class ConnectionSession:
    """Owns the command channel, dispatcher and live poll for one websocket."""

    def __init__(
        self,
        ws: web.WebSocketResponse,
        *,
        config: BridgeConfig,
        fetcher: ChannelFetcher,
        avatars: AvatarSource,
        resolver: ColorResolver,
    ) -> None:
        self.id = next(_SESSION_IDS)
        self._ws = ws
        self._config = config
        self.channel = CommandChannel(
            ws.send_str,
            min_interval=config.commands.command_interval,
            name=f"session-{self.id}",
        )
        self.dispatcher = CommandDispatcher(
            self.channel,
            fetcher=fetcher,
            avatars=avatars,
            resolver=resolver,
            config=config,
        )
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def run(self) -> None:
        """Subscribe to chat and process frames until the socket closes."""

        LOGGER.info("Session %d connected", self.id)
        try:
            await self._ws.send_str(SubscribeRequest(PLAYER_MESSAGE_EVENT).to_json())
            self._spawn(self._send_welcome(), name="welcome")

            async for message in self._ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    self.handle_frame(message.data)
                elif message.type == aiohttp.WSMsgType.ERROR:
                    LOGGER.warning(
                        "Session %d websocket error: %s", self.id, self._ws.exception()
                    )
                    break
        finally:
            await self.close()
            LOGGER.info("Session %d disconnected", self.id)

    def handle_frame(self, raw: str) -> Optional[asyncio.Task[Any]]:
        """Decode one inbound frame, scheduling a dispatcher task for chat lines."""

        try:
            event = decode_inbound(raw)
        except ProtocolDecodeError as exc:
            LOGGER.warning("Session %d dropped malformed frame: %s", self.id, exc)
            return None

        if isinstance(event, PlayerMessage):
            if not event.is_chat:
                return None
            LOGGER.debug("Session %d chat from %s: %s", self.id, event.sender, event.message)
            return self._spawn(self.dispatcher.handle_line(event.message), name="command")

        if isinstance(event, CommandResponse):
            LOGGER.debug(
                "Session %d command response %s: %s",
                self.id,
                event.status_code,
                event.status_message,
            )
        return None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        await self.dispatcher.shutdown()
        await self.channel.close()

        if not self._ws.closed:
            await self._ws.close()

    async def _send_welcome(self) -> None:
        await asyncio.sleep(self._config.server.welcome_delay_seconds)
        message = WELCOME_MESSAGE.format(prefix=self._config.commands.prefix)
        try:
            await self.channel.say(message)
        except ChannelError as exc:
            LOGGER.debug("Session %d welcome not delivered: %s", self.id, exc)

    def _spawn(self, coro, *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=f"session-{self.id}-{name}")
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Session %d task %s failed", self.id, task.get_name(), exc_info=exc)
