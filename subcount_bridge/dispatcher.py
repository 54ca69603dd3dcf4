"""Chat command dispatcher for one connection.

Recognised lines start with the configured prefix (``!`` by default) and
are split on whitespace into a command name and its arguments. ``subs``,
``channel`` and ``clear`` render into the world and are mutually exclusive
through the busy flag; everything else may run while one of them is busy.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from .adapters.avatar import ImageProcessingError, PixelGrid
from .adapters.counter_api import (
    ChannelData,
    ChannelInputError,
    SearchResult,
    format_subscriber_count,
    validate_channel_input,
)
from .channel import ChannelError, CommandChannel
from .config import BridgeConfig
from .live import LiveUpdateSession
from .render import (
    ColorResolver,
    clear_plan,
    diff_count_plan,
    full_count_plan,
    image_plan,
    to_commands,
)

LOGGER = logging.getLogger(__name__)

_BUSY_COMMANDS = frozenset({"subs", "subscribers", "channel", "chan", "clear", "reset"})


class ChannelFetcher(Protocol):
    """Remote lookups the dispatcher needs."""

    async def resolve_channel(self, value: str) -> ChannelData:
        """Exact lookup with search fallback."""
        ...

    async def fetch_by_id(self, channel_id: str) -> ChannelData:
        ...

    async def search_by_term(self, term: str) -> SearchResult:
        ...


class AvatarSource(Protocol):
    async def fetch_and_resize(self, url: str, width: int, height: int) -> PixelGrid:
        """Return ``height`` rows of ``width`` RGB tuples."""
        ...


def format_duration(seconds: float) -> str:
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class CommandDispatcher:
    """Turns chat lines into replies and render batches on a command channel."""

    def __init__(
        self,
        channel: CommandChannel,
        *,
        fetcher: ChannelFetcher,
        avatars: AvatarSource,
        resolver: ColorResolver,
        config: BridgeConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channel = channel
        self._fetcher = fetcher
        self._avatars = avatars
        self._resolver = resolver
        self._config = config
        self._clock = clock

        self._busy = False
        self._live: Optional[LiveUpdateSession] = None
        self._channel_id: Optional[str] = None
        self._channel_name: Optional[str] = None
        self._last_count: Optional[int] = None
        self._displayed_count: Optional[int] = None

        self._handlers: Dict[str, Callable[[List[str]], Awaitable[None]]] = {
            "subs": self._handle_subscribers,
            "subscribers": self._handle_subscribers,
            "channel": self._handle_subscribers,
            "chan": self._handle_subscribers,
            "info": self._handle_info,
            "search": self._handle_search,
            "live": self._handle_live,
            "stop": self._handle_stop,
            "clear": self._handle_clear,
            "reset": self._handle_clear,
            "help": self._handle_help,
            "commands": self._handle_help,
            "status": self._handle_status,
            "reload": self._handle_reload,
        }

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def live_active(self) -> bool:
        return self._live is not None and self._live.active

    @property
    def channel_id(self) -> Optional[str]:
        return self._channel_id

    @property
    def displayed_count(self) -> Optional[int]:
        return self._displayed_count

    async def handle_line(self, line: str) -> bool:
        """Run the command in ``line``. Returns False for non-command chat."""

        text = line.strip()
        prefix = self._config.commands.prefix
        if not text.startswith(prefix):
            return False

        parts = text[len(prefix) :].split()
        if not parts:
            return False

        name = parts[0].lower()
        args = parts[1:]
        LOGGER.info("Processing command %s with args %s", name, args)

        try:
            await self._execute(name, args)
        except Exception as exc:
            LOGGER.exception("Command %s failed", name)
            await self._say(f"Error: {exc}")
        return True

    async def shutdown(self) -> None:
        """Stop background work; used when the connection goes away."""

        await self._stop_live()

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------
    async def _execute(self, name: str, args: List[str]) -> None:
        if name in _BUSY_COMMANDS and self._busy:
            await self._say("Please wait, still processing previous command...")
            return

        handler = self._handlers.get(name)
        if handler is None:
            prefix = self._config.commands.prefix
            await self._say(
                f"Unknown command: {name}. Use {prefix}help for available commands."
            )
            return
        await handler(args)

    async def _handle_subscribers(self, args: List[str]) -> None:
        self._busy = True
        try:
            if not args:
                await self._say(f"Usage: {self._config.commands.prefix}subs <channel_url_or_id>")
                return

            channel_input = " ".join(args)
            try:
                validate_channel_input(channel_input)
            except ChannelInputError as exc:
                await self._say(str(exc))
                return

            await self._say("Fetching channel data...")
            data = await self._fetcher.resolve_channel(channel_input)
            if not data.success:
                await self._say(f"Failed to fetch channel data: {data.error}")
                return

            await self._say(
                f"Found: {data.channel_name} "
                f"({format_subscriber_count(data.subscriber_count)} subs)"
            )

            await self._stop_live(announce=True)
            await self._clear_display()

            display = self._config.display
            groups = None
            if data.avatar_url:
                await self._say("Processing profile image...")
                try:
                    grid = await self._avatars.fetch_and_resize(
                        data.avatar_url, display.image_width, display.image_height
                    )
                    groups = image_plan(grid, self._resolver, display)
                except ImageProcessingError as exc:
                    LOGGER.warning("Profile image failed, continuing without it: %s", exc)
                    await self._say("Profile image failed, showing subscriber count only")

            await self._say("Rendering in Minecraft...")
            commands = self._config.commands
            await self._channel.submit_batch(
                to_commands(full_count_plan(data.subscriber_count, display)),
                commands.batch_delay,
            )
            self._displayed_count = data.subscriber_count

            if groups:
                for label, ops in groups.items():
                    LOGGER.debug("Rendering %d %s blocks", len(ops), label)
                    await self._channel.submit_batch(
                        to_commands(ops), commands.image_batch_delay
                    )

            self._channel_id = data.channel_id
            self._channel_name = data.channel_name
            self._last_count = data.subscriber_count
            await self._say("Display complete!")
        finally:
            self._busy = False

    async def _handle_info(self, args: List[str]) -> None:
        if not args:
            await self._say(f"Usage: {self._config.commands.prefix}info <channel_url_or_id>")
            return

        channel_input = " ".join(args)
        try:
            validate_channel_input(channel_input)
        except ChannelInputError as exc:
            await self._say(str(exc))
            return

        await self._say("Fetching channel info...")
        data = await self._fetcher.resolve_channel(channel_input)
        if not data.success:
            await self._say(f"Failed to fetch channel: {data.error}")
            return

        await self._say(f"{data.channel_name} ({data.channel_id})")
        await self._say(
            f"Subscribers: {data.subscriber_count:,} "
            f"({format_subscriber_count(data.subscriber_count)})"
        )

    async def _handle_search(self, args: List[str]) -> None:
        if not args:
            await self._say(f"Usage: {self._config.commands.prefix}search <search_term>")
            return

        term = " ".join(args)
        await self._say(f"Searching for \"{term}\"...")
        result = await self._fetcher.search_by_term(term)
        if not result.success:
            await self._say(f"Search failed: {result.error}")
            return
        if not result.results:
            await self._say(f"No channels found for: {term}")
            return

        hits = result.results[: self._config.api.search_limit]
        for index, hit in enumerate(hits, start=1):
            await self._say(f"{index}. {hit.channel_name} ({hit.channel_id})")
            if index < len(hits):
                await asyncio.sleep(self._config.commands.reply_pause)

    async def _handle_live(self, args: List[str]) -> None:
        prefix = self._config.commands.prefix
        if self._channel_id is None:
            await self._say(f"No channel selected. Use {prefix}subs <channel> first.")
            return
        if self.live_active:
            await self._say(f"Live updates already running. Use {prefix}stop to end them.")
            return

        live_config = self._config.live
        self._live = LiveUpdateSession(
            channel_id=self._channel_id,
            channel_name=self._channel_name,
            initial_count=self._displayed_count,
            source=self._fetcher,
            on_change=self._on_live_change,
            on_expired=self._on_live_expired,
            poll_interval=live_config.poll_interval_seconds,
            max_duration=live_config.max_duration_seconds,
            clock=self._clock,
        )
        self._live.start()
        await self._say(
            f"Live updates started for {self._channel_name} "
            f"(every {live_config.poll_interval_seconds:g}s, "
            f"max {format_duration(live_config.max_duration_seconds)})"
        )

    async def _handle_stop(self, args: List[str]) -> None:
        if not self.live_active:
            await self._say("No live updates running.")
            return
        live = self._live
        self._live = None
        elapsed = await live.stop()
        await self._say(f"Live updates stopped after {format_duration(elapsed)}")

    async def _handle_clear(self, args: List[str]) -> None:
        self._busy = True
        try:
            await self._stop_live(announce=True)
            await self._say("Clearing displays...")
            await self._clear_display()
            self._channel.clear()
            self._forget_channel()
            await self._say("All displays cleared!")
        finally:
            self._busy = False

    async def _handle_help(self, args: List[str]) -> None:
        prefix = self._config.commands.prefix
        lines = [
            "Subscriber display commands:",
            f"{prefix}subs <channel> - Display subscriber count and profile",
            f"{prefix}info <channel> - Get channel info only",
            f"{prefix}search <term> - Search for channels",
            f"{prefix}live / {prefix}stop - Start or stop live count updates",
            f"{prefix}clear - Clear all displays",
            f"{prefix}status - Show bot status",
            f"{prefix}reload - Reset caches and queue",
        ]
        for index, line in enumerate(lines):
            await self._say(line)
            if index < len(lines) - 1:
                await asyncio.sleep(self._config.commands.reply_pause)

    async def _handle_status(self, args: List[str]) -> None:
        state = "Busy" if self._busy else "Idle"
        if self.live_active and self._live is not None:
            live = f"on ({format_duration(self._live.elapsed)})"
        else:
            live = "off"
        await self._say(
            f"Bot Status: {state} | Queue: {self._channel.queue_length} | "
            f"Cache: {self._resolver.cache_size} | Live: {live}"
        )

    async def _handle_reload(self, args: List[str]) -> None:
        await self._say("Reloading bot systems...")
        self._resolver.clear_cache()
        self._channel.clear()
        await self._stop_live(announce=False)
        self._forget_channel()
        await self._say("Bot reloaded successfully!")

    # ------------------------------------------------------------------
    # Live update callbacks
    # ------------------------------------------------------------------
    async def _on_live_change(self, new_count: int, old_count: Optional[int]) -> None:
        plan = diff_count_plan(new_count, self._displayed_count, self._config.display)
        LOGGER.info(
            "Live count changed %s -> %d (%d operations)", old_count, new_count, len(plan)
        )
        # unknown until the whole batch lands; a diff against None redraws every slot
        self._displayed_count = None
        outcomes = await self._channel.submit_batch(
            to_commands(plan), self._config.commands.batch_delay
        )
        failed = sum(1 for outcome in outcomes if not outcome.success)
        if failed or len(outcomes) < len(plan):
            raise ChannelError(
                f"Live render incomplete: {failed} of {len(plan)} commands failed"
            )
        self._displayed_count = new_count
        self._last_count = new_count

        delta = "" if old_count is None else f" ({new_count - old_count:+,})"
        await self._say(f"{self._channel_name}: {new_count:,} subs{delta}")

    async def _on_live_expired(self, elapsed: float) -> None:
        self._live = None
        await self._say(
            f"Live updates stopped automatically after {format_duration(elapsed)}"
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _say(self, message: str) -> None:
        try:
            await self._channel.say(message)
        except ChannelError as exc:
            LOGGER.debug("Could not deliver reply %r: %s", message, exc)

    async def _clear_display(self) -> None:
        display = self._config.display
        await self._channel.submit_batch(
            to_commands(clear_plan(display.clear_areas)),
            self._config.commands.clear_batch_delay,
        )
        self._displayed_count = None

    async def _stop_live(self, *, announce: bool = False) -> None:
        live = self._live
        if live is None:
            return
        self._live = None
        was_active = live.active
        elapsed = await live.stop()
        if announce and was_active:
            await self._say(f"Live updates stopped after {format_duration(elapsed)}")

    def _forget_channel(self) -> None:
        self._channel_id = None
        self._channel_name = None
        self._last_count = None
        self._displayed_count = None
