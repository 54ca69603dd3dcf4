"""Periodic subscriber-count polling for one connection."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Awaitable, Callable, Optional, Protocol

from .adapters.counter_api import ChannelData

LOGGER = logging.getLogger(__name__)

ChangeCallback = Callable[[int, Optional[int]], Awaitable[None]]
ExpiredCallback = Callable[[float], Awaitable[None]]


class ChannelDataSource(Protocol):
    async def fetch_by_id(self, channel_id: str) -> ChannelData:
        ...


class LiveUpdateSession:
    """Re-fetches one channel on a fixed interval until stopped or expired.

    ``on_change(new, old)`` runs whenever the fetched count differs from the
    last observed one. When ``max_duration`` elapses without an explicit
    ``stop()`` the poll ends by itself and ``on_expired(elapsed)`` runs once.
    """

    def __init__(
        self,
        *,
        channel_id: str,
        channel_name: Optional[str],
        initial_count: Optional[int],
        source: ChannelDataSource,
        on_change: ChangeCallback,
        on_expired: ExpiredCallback,
        poll_interval: float = 2.0,
        max_duration: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.channel_id = channel_id
        self.channel_name = channel_name
        self.last_count = initial_count
        self._source = source
        self._on_change = on_change
        self._on_expired = on_expired
        self._poll_interval = poll_interval
        self._max_duration = max_duration
        self._clock = clock
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None
        self._task: Optional[asyncio.Task[None]] = None
        self.poll_count = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return end - self._started_at

    def start(self) -> None:
        if self.active:
            raise RuntimeError("Live update session already running")
        self._started_at = self._clock()
        self._stopped_at = None
        self._task = asyncio.create_task(
            self._run(), name=f"live-update-{self.channel_id}"
        )
        LOGGER.info(
            "Live updates started for %s every %.1fs (max %.0fs)",
            self.channel_id,
            self._poll_interval,
            self._max_duration,
        )

    async def stop(self) -> float:
        """Cancel polling and return the session duration. Safe to call twice."""

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._started_at is not None and self._stopped_at is None:
            self._stopped_at = self._clock()
            LOGGER.info(
                "Live updates for %s stopped after %.1fs", self.channel_id, self.elapsed
            )
        return self.elapsed

    async def _run(self) -> None:
        try:
            async with asyncio.timeout(self._max_duration):
                while True:
                    await asyncio.sleep(self._poll_interval)
                    await self._poll_once()
        except TimeoutError:
            self._stopped_at = self._clock()
            LOGGER.info(
                "Live updates for %s reached the %.0fs limit",
                self.channel_id,
                self._max_duration,
            )
            await self._on_expired(self.elapsed)

    async def _poll_once(self) -> None:
        self.poll_count += 1
        data = await self._source.fetch_by_id(self.channel_id)
        if not data.success:
            LOGGER.warning("Live poll for %s failed: %s", self.channel_id, data.error)
            return

        new_count = data.subscriber_count
        if new_count == self.last_count:
            return

        previous = self.last_count
        try:
            await self._on_change(new_count, previous)
        except Exception:
            LOGGER.exception("Live update render failed for %s", self.channel_id)
            return
        self.last_count = new_count
