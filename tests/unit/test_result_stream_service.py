"""Unit tests for the result broker and the SSE generator."""

import asyncio
import json

import pytest

from app.services.result_stream import (
    HEARTBEAT_FRAME,
    ResultBroker,
    StreamMessage,
    event_stream,
    format_sse,
)

ELECTION = "e1"


def _loader(calls: list):
    async def load(election_id: str) -> dict:
        calls.append(election_id)
        return {"election_id": election_id, "total_votes": len(calls)}

    return load


async def test_subscribe_and_unsubscribe():
    broker = ResultBroker(snapshot_loader=_loader([]))

    first = await broker.subscribe(ELECTION)
    second = await broker.subscribe(ELECTION)
    other = await broker.subscribe("e2")

    assert await broker.subscriber_count(ELECTION) == 2
    assert await broker.subscriber_count() == 3

    await broker.unsubscribe(first)
    await broker.unsubscribe(first)
    assert await broker.subscriber_count(ELECTION) == 1

    await broker.unsubscribe(second)
    await broker.unsubscribe(other)
    assert await broker.subscriber_count() == 0


async def test_publish_reaches_only_the_election_subscribers():
    broker = ResultBroker(snapshot_loader=_loader([]))
    mine = await broker.subscribe(ELECTION)
    other = await broker.subscribe("e2")

    delivered = await broker.publish(ELECTION, StreamMessage("vote_update", {"n": 1}))

    assert delivered == 1
    assert mine.queue.get_nowait().data == {"n": 1}
    assert other.queue.empty()


async def test_publish_drops_slow_subscribers():
    broker = ResultBroker(snapshot_loader=_loader([]), queue_size=1)
    slow = await broker.subscribe(ELECTION)
    fast = await broker.subscribe(ELECTION)

    await broker.publish(ELECTION, StreamMessage("vote_update", {"n": 1}))
    fast.queue.get_nowait()
    delivered = await broker.publish(ELECTION, StreamMessage("vote_update", {"n": 2}))

    assert delivered == 1
    assert slow.dropped is True
    assert fast.dropped is False
    assert await broker.subscriber_count(ELECTION) == 1


async def test_notify_vote_update_loads_snapshot_once_for_all_subscribers():
    calls: list = []
    broker = ResultBroker(snapshot_loader=_loader(calls))
    first = await broker.subscribe(ELECTION)
    second = await broker.subscribe(ELECTION)

    await broker.notify_vote_update(ELECTION)

    assert calls == [ELECTION]
    assert first.queue.get_nowait().event == "vote_update"
    assert second.queue.get_nowait().event == "vote_update"


async def test_notify_vote_update_skips_elections_without_subscribers():
    calls: list = []
    broker = ResultBroker(snapshot_loader=_loader(calls))

    await broker.notify_vote_update(ELECTION)

    assert calls == []


async def test_notify_vote_update_swallows_loader_failures():
    async def failing(election_id: str) -> dict:
        raise RuntimeError("database down")

    broker = ResultBroker(snapshot_loader=failing)
    subscription = await broker.subscribe(ELECTION)

    await broker.notify_vote_update(ELECTION)

    assert subscription.queue.empty()


async def test_overlapping_updates_publish_in_load_order():
    loads = 0
    release_first = asyncio.Event()

    async def slow_first_load(election_id: str) -> dict:
        nonlocal loads
        loads += 1
        sequence = loads
        if sequence == 1:
            await release_first.wait()
        return {"sequence": sequence}

    broker = ResultBroker(snapshot_loader=slow_first_load, queue_size=10)
    subscription = await broker.subscribe(ELECTION)

    first = asyncio.create_task(broker.notify_vote_update(ELECTION))
    while loads < 1:
        await asyncio.sleep(0)
    second = asyncio.create_task(broker.notify_vote_update(ELECTION))
    await asyncio.sleep(0)
    release_first.set()
    await asyncio.gather(first, second)

    received = [subscription.queue.get_nowait().data["sequence"] for _ in range(2)]
    assert received == [1, 2]


def test_format_sse():
    frame = format_sse("snapshot", {"election_id": ELECTION, "name": "เลือกตั้ง"})

    assert frame.startswith("event: snapshot\ndata: ")
    assert frame.endswith("\n\n")
    payload = frame.split("data: ", 1)[1].strip()
    assert json.loads(payload) == {"election_id": ELECTION, "name": "เลือกตั้ง"}


async def test_event_stream_sends_snapshot_updates_and_heartbeats():
    broker = ResultBroker(snapshot_loader=_loader([]))
    subscription = await broker.subscribe(ELECTION)
    stream = event_stream(broker, subscription, {"total_votes": 0}, heartbeat_seconds=0.01)

    first = await stream.__anext__()
    assert first.startswith("event: snapshot")

    assert await stream.__anext__() == HEARTBEAT_FRAME

    await broker.publish(ELECTION, StreamMessage("vote_update", {"total_votes": 1}))
    update = await stream.__anext__()
    assert update.startswith("event: vote_update")

    await stream.aclose()
    assert await broker.subscriber_count(ELECTION) == 0


async def test_event_stream_ends_after_subscriber_is_dropped():
    broker = ResultBroker(snapshot_loader=_loader([]), queue_size=1)
    subscription = await broker.subscribe(ELECTION)
    await broker.publish(ELECTION, StreamMessage("vote_update", {"n": 1}))
    await broker.publish(ELECTION, StreamMessage("vote_update", {"n": 2}))
    assert subscription.dropped is True

    frames = [
        frame
        async for frame in event_stream(broker, subscription, {}, heartbeat_seconds=0.01)
    ]

    assert len(frames) == 2
    assert frames[1].startswith("event: vote_update")


async def test_event_stream_unsubscribes_when_cancelled():
    broker = ResultBroker(snapshot_loader=_loader([]))
    subscription = await broker.subscribe(ELECTION)

    async def consume():
        async for _ in event_stream(broker, subscription, {}, heartbeat_seconds=10):
            pass

    task = asyncio.create_task(consume())
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert await broker.subscriber_count(ELECTION) == 0
