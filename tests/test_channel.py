"""Tests for the rate-limited command channel."""

import asyncio
import json
import time

import pytest

from subcount_bridge.channel import (
    ChannelClosedError,
    CommandChannel,
    CommandSendError,
    CommandValidationError,
    QueueCancelledError,
)


class RecordingWriter:
    def __init__(self, *, fail_on: tuple[str, ...] = ()) -> None:
        self.frames: list[dict] = []
        self.times: list[float] = []
        self.fail_on = set(fail_on)

    async def __call__(self, frame: str) -> None:
        payload = json.loads(frame)
        line = payload["body"]["commandLine"]
        self.times.append(time.monotonic())
        if line in self.fail_on:
            raise ConnectionResetError("socket gone")
        self.frames.append(payload)

    @property
    def lines(self) -> list[str]:
        return [frame["body"]["commandLine"] for frame in self.frames]


@pytest.mark.asyncio
async def test_submit_sends_command_request_with_single_slash():
    writer = RecordingWriter()
    channel = CommandChannel(writer, min_interval=0.01)

    outcome = await channel.submit("//say hello")

    assert outcome.success is True
    assert outcome.command_line == "/say hello"
    frame = writer.frames[0]
    assert frame["header"]["messagePurpose"] == "commandRequest"
    assert frame["header"]["requestId"] == outcome.request_id
    assert frame["body"]["origin"] == {"type": "player"}
    assert channel.sent_count == 1
    await channel.close()


@pytest.mark.asyncio
async def test_commands_are_paced_and_fifo():
    writer = RecordingWriter()
    interval = 0.03
    channel = CommandChannel(writer, min_interval=interval)

    futures = [channel.submit_nowait(f"fill {i}") for i in range(5)]
    assert channel.is_draining
    outcomes = await asyncio.gather(*futures)

    assert [o.success for o in outcomes] == [True] * 5
    assert writer.lines == [f"/fill {i}" for i in range(5)]
    gaps = [b - a for a, b in zip(writer.times, writer.times[1:])]
    assert all(gap >= interval - 1e-6 for gap in gaps)
    assert channel.queue_length == 0
    await channel.close()


@pytest.mark.asyncio
async def test_priority_command_passes_queued_commands():
    writer = RecordingWriter()
    channel = CommandChannel(writer, min_interval=0.02)

    queued = [channel.submit_nowait(f"clone {i}") for i in range(3)]
    reply = channel.submit_nowait("say hi", priority=True)

    await asyncio.gather(reply, *queued)

    assert writer.lines[0] == "/say hi"
    assert writer.lines[1:] == ["/clone 0", "/clone 1", "/clone 2"]
    await channel.close()


@pytest.mark.asyncio
async def test_clear_fails_every_pending_command():
    writer = RecordingWriter()
    channel = CommandChannel(writer, min_interval=10.0)

    await channel.submit("say first")
    pending = [channel.submit_nowait(f"fill {i}") for i in range(4)]

    assert channel.clear() == 4
    assert channel.queue_length == 0
    for future in pending:
        with pytest.raises(QueueCancelledError):
            await future

    assert writer.lines == ["/say first"]
    await channel.close()


class GatedWriter(RecordingWriter):
    """Blocks inside the write until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self, frame: str) -> None:
        self.started.set()
        await self.release.wait()
        await super().__call__(frame)


@pytest.mark.asyncio
async def test_clear_leaves_command_being_written_untouched():
    writer = GatedWriter()
    channel = CommandChannel(writer, min_interval=0.0)

    in_flight = channel.submit_nowait("fill a")
    await asyncio.wait_for(writer.started.wait(), timeout=1.0)
    queued = [channel.submit_nowait("fill b"), channel.submit_nowait("fill c")]

    assert channel.clear() == 2
    writer.release.set()

    outcome = await asyncio.wait_for(in_flight, timeout=1.0)
    assert outcome.success is True
    for future in queued:
        with pytest.raises(QueueCancelledError):
            await future
    assert writer.lines == ["/fill a"]
    await channel.close()


@pytest.mark.asyncio
async def test_empty_command_is_rejected():
    channel = CommandChannel(RecordingWriter())

    with pytest.raises(CommandValidationError):
        await channel.submit("   ")
    with pytest.raises(CommandValidationError):
        channel.submit_nowait("/")
    await channel.close()


@pytest.mark.asyncio
async def test_send_failure_fails_only_that_command():
    writer = RecordingWriter(fail_on=("/fill bad",))
    channel = CommandChannel(writer, min_interval=0.01)

    bad = channel.submit_nowait("fill bad")
    good = channel.submit_nowait("fill good")

    with pytest.raises(CommandSendError):
        await bad
    outcome = await good

    assert outcome.success is True
    assert writer.lines == ["/fill good"]
    await channel.close()


@pytest.mark.asyncio
async def test_batch_records_failures_and_continues():
    writer = RecordingWriter(fail_on=("/setblock 2",))
    channel = CommandChannel(writer, min_interval=0.005)

    results = await channel.submit_batch(
        ["setblock 1", "", "setblock 2", "setblock 3"], inter_command_delay=0.001
    )

    assert [r.success for r in results] == [True, False, False, True]
    assert results[1].error == "Command cannot be empty"
    assert writer.lines == ["/setblock 1", "/setblock 3"]
    await channel.close()


@pytest.mark.asyncio
async def test_abandoned_command_is_skipped():
    writer = RecordingWriter()
    channel = CommandChannel(writer, min_interval=0.03)

    await channel.submit("say first")
    abandoned = asyncio.create_task(channel.submit("say second"))
    await asyncio.sleep(0)
    abandoned.cancel()
    with pytest.raises(asyncio.CancelledError):
        await abandoned

    await channel.submit("say third")

    assert writer.lines == ["/say first", "/say third"]
    await channel.close()


@pytest.mark.asyncio
async def test_closed_channel_rejects_submissions():
    writer = RecordingWriter()
    channel = CommandChannel(writer, min_interval=10.0)

    await channel.submit("say first")
    pending = channel.submit_nowait("say second")
    await channel.close()

    assert channel.closed
    with pytest.raises(QueueCancelledError):
        await pending
    with pytest.raises(ChannelClosedError):
        await channel.say("late")
    assert await channel.submit_batch(["say x"]) == []


@pytest.mark.asyncio
async def test_game_helpers_format_commands():
    writer = RecordingWriter()
    channel = CommandChannel(writer, min_interval=0.0)

    await channel.fill("0 0 0", "1 1 1")
    await channel.set_block("5 -60 3", "red_wool")
    await channel.clone("0 0 0", "2 0 4", "9 9 9")

    assert writer.lines == [
        "/fill 0 0 0 1 1 1 air",
        "/setblock 5 -60 3 red_wool",
        "/clone 0 0 0 2 0 4 9 9 9",
    ]
    await channel.close()
