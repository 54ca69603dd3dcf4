"""Rate-limited outbound command channel.

Every connection owns one ``CommandChannel``. Commands are written to the
socket one at a time, never closer together than ``min_interval`` seconds,
in the order they were submitted. Priority commands (chat replies) skip the
queue but still wait for a write that is already in progress.

Each submission returns an ``asyncio.Future`` that settles exactly once:
with a ``CommandOutcome`` once the frame has been written, with
``CommandSendError`` if the write failed, or with ``QueueCancelledError`` if
the queue was cleared first.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Deque, List, Optional, Sequence, Set

from .protocol import CommandRequest, normalize_command_line

LOGGER = logging.getLogger(__name__)

Writer = Callable[[str], Awaitable[None]]


class ChannelError(RuntimeError):
    """Base class for command channel failures."""


class QueueCancelledError(ChannelError):
    """Raised to a caller whose queued command was dropped by ``clear()``."""


class CommandSendError(ChannelError):
    """Raised when writing a command frame to the socket fails."""


class ChannelClosedError(ChannelError):
    """Raised when submitting to a channel that has been closed."""


class CommandValidationError(ValueError):
    """Raised when a command is rejected before it reaches the queue."""


@dataclass(slots=True)
class CommandOutcome:
    command_line: str
    success: bool
    request_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class QueuedCommand:
    command_line: str
    priority: bool
    enqueued_at: float
    future: "asyncio.Future[CommandOutcome]"


def _consume_exception(future: "asyncio.Future[CommandOutcome]") -> None:
    # Fire-and-forget submissions never await their future.
    if not future.cancelled():
        future.exception()


class CommandChannel:
    """FIFO command queue with a minimum interval between socket writes."""

    def __init__(
        self,
        writer: Writer,
        *,
        min_interval: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
        name: str = "channel",
    ) -> None:
        self._writer = writer
        self._min_interval = max(0.0, min_interval)
        self._clock = clock
        self._name = name

        self._queue: Deque[QueuedCommand] = deque()
        self._write_lock = asyncio.Lock()
        self._drain_task: Optional[asyncio.Task[None]] = None
        self._priority_tasks: Set[asyncio.Task[None]] = set()
        self._last_send: Optional[float] = None
        self._sent_count = 0
        self._closed = False

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    @property
    def last_send(self) -> Optional[float]:
        return self._last_send

    @property
    def sent_count(self) -> int:
        return self._sent_count

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit_nowait(
        self, text: str, *, priority: bool = False
    ) -> "asyncio.Future[CommandOutcome]":
        """Queue ``text`` and return the future that reports its outcome.

        Raises:
            ChannelClosedError: If the channel has been closed.
            CommandValidationError: If ``text`` is empty.
        """

        if self._closed:
            raise ChannelClosedError(f"{self._name} is closed")
        if not text or not text.strip().lstrip("/").strip():
            raise CommandValidationError("Command cannot be empty")

        future: asyncio.Future[CommandOutcome] = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        item = QueuedCommand(
            command_line=normalize_command_line(text),
            priority=priority,
            enqueued_at=self._clock(),
            future=future,
        )

        if priority:
            task = asyncio.create_task(self._execute_priority(item))
            self._priority_tasks.add(task)
            task.add_done_callback(self._priority_tasks.discard)
        else:
            self._queue.append(item)
            self._ensure_draining()

        return future

    async def submit(self, text: str, *, priority: bool = False) -> CommandOutcome:
        """Submit ``text`` and wait until it has been written.

        Cancelling the caller abandons the command if it has not been sent yet.
        """

        return await self.submit_nowait(text, priority=priority)

    async def submit_batch(
        self, texts: Sequence[str], inter_command_delay: float = 0.0
    ) -> List[CommandOutcome]:
        """Submit ``texts`` one after another.

        Each command is awaited before the next is submitted, with an extra
        ``inter_command_delay`` pause in between. Failures are returned as
        unsuccessful outcomes and do not stop the batch; a closed channel does.
        """

        results: List[CommandOutcome] = []
        last_index = len(texts) - 1
        for index, text in enumerate(texts):
            if self._closed:
                break
            try:
                results.append(await self.submit(text))
            except (ChannelError, CommandValidationError) as exc:
                LOGGER.warning("Batch command %d failed (%s): %s", index, text, exc)
                results.append(CommandOutcome(command_line=text, success=False, error=str(exc)))

            if index < last_index and inter_command_delay > 0:
                await asyncio.sleep(inter_command_delay)
        return results

    def clear(self) -> int:
        """Drop every queued command, failing their futures. Returns the count."""

        cleared = 0
        while self._queue:
            item = self._queue.popleft()
            if item.future.done():
                continue
            item.future.set_exception(
                QueueCancelledError("Command cancelled - queue cleared")
            )
            cleared += 1

        if cleared:
            LOGGER.info("%s: cleared %d queued commands", self._name, cleared)
        return cleared

    async def close(self) -> None:
        """Clear the queue, stop draining and reject further submissions."""

        if self._closed:
            return
        self._closed = True
        self.clear()

        tasks = list(self._priority_tasks)
        if self._drain_task is not None:
            tasks.append(self._drain_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._drain_task = None

    # ------------------------------------------------------------------
    # Game command helpers
    # ------------------------------------------------------------------
    async def say(self, message: str) -> CommandOutcome:
        return await self.submit(f"say {message}", priority=True)

    async def fill(self, start: str, end: str, block: str = "air") -> CommandOutcome:
        return await self.submit(f"fill {start} {end} {block}")

    async def set_block(self, position: str, block: str) -> CommandOutcome:
        return await self.submit(f"setblock {position} {block}")

    async def clone(self, start: str, end: str, destination: str) -> CommandOutcome:
        return await self.submit(f"clone {start} {end} {destination}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _time_until_ready(self) -> float:
        if self._last_send is None:
            return 0.0
        return self._min_interval - (self._clock() - self._last_send)

    def _ensure_draining(self) -> None:
        if self.is_draining:
            return
        self._drain_task = asyncio.create_task(self._drain(), name=f"{self._name}-drain")

    async def _drain(self) -> None:
        while self._queue:
            if self._priority_tasks:
                await asyncio.wait(list(self._priority_tasks))
                continue

            delay = self._time_until_ready()
            if delay > 0:
                await asyncio.sleep(delay)
                continue

            async with self._write_lock:
                # a priority write may have happened while we waited for the lock
                if not self._queue or self._time_until_ready() > 0:
                    continue
                item = self._queue.popleft()
                await self._write(item)

    async def _execute_priority(self, item: QueuedCommand) -> None:
        async with self._write_lock:
            await self._write(item)

    async def _write(self, item: QueuedCommand) -> None:
        if item.future.done():
            LOGGER.debug("%s: skipping abandoned command %s", self._name, item.command_line)
            return

        request = CommandRequest(item.command_line)
        try:
            await self._writer(request.to_json())
        except asyncio.CancelledError:
            if not item.future.done():
                item.future.set_exception(
                    QueueCancelledError("Command cancelled - channel closed")
                )
            raise
        except Exception as exc:
            LOGGER.warning("%s: failed to send %s: %s", self._name, item.command_line, exc)
            if not item.future.done():
                item.future.set_exception(
                    CommandSendError(f"Failed to send {item.command_line}: {exc}")
                )
            return
        finally:
            self._last_send = self._clock()

        self._sent_count += 1
        LOGGER.debug("%s: sent %s", self._name, item.command_line)
        if not item.future.done():
            item.future.set_result(
                CommandOutcome(
                    command_line=item.command_line,
                    success=True,
                    request_id=request.request_id,
                )
            )
