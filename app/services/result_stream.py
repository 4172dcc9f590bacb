"""
Live result streaming.

``ResultBroker`` owns the registry of result subscribers, keyed by election
id. Subscribing and unsubscribing mutate the registry under a lock; a publish
copies the subscriber list under the lock and delivers outside it, so a
broadcast never iterates a collection that is being mutated.

Each subscriber gets a bounded queue. When a queue is full the subscriber is
dropped from the registry and its stream ends; the client has to subscribe
again. There is no replay.

Vote updates for one election are loaded and published one at a time, so a
subscriber never receives an older snapshot after a newer one.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
import uuid

from app.core.config import settings
from app.core.database import get_db_connection
from app.core.logging_config import get_logger
from app.core.responses import to_json
from app.services.results import compute_snapshot

logger = get_logger(__name__)

SNAPSHOT_EVENT = "snapshot"
VOTE_UPDATE_EVENT = "vote_update"
HEARTBEAT_FRAME = ": heartbeat\n\n"

SnapshotLoader = Callable[[str], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class StreamMessage:
    event: str
    data: dict[str, Any]


@dataclass(eq=False)
class Subscription:
    election_id: str
    queue: asyncio.Queue
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    dropped: bool = False


async def load_snapshot(election_id: str) -> dict[str, Any]:
    """Compute a snapshot on a pooled connection of its own."""
    async with get_db_connection() as conn:
        return await compute_snapshot(conn, election_id)


class ResultBroker:
    """In-process fan-out of result snapshots to stream subscribers."""

    def __init__(
        self,
        snapshot_loader: SnapshotLoader | None = None,
        queue_size: int | None = None,
    ) -> None:
        self._subscribers: dict[str, dict[str, Subscription]] = {}
        self._lock = asyncio.Lock()
        self._update_locks: dict[str, asyncio.Lock] = {}
        self._snapshot_loader = snapshot_loader or load_snapshot
        self._queue_size = queue_size or settings.STREAM_QUEUE_SIZE

    async def load_snapshot(self, election_id: str) -> dict[str, Any]:
        return await self._snapshot_loader(election_id)

    async def subscribe(self, election_id: str) -> Subscription:
        subscription = Subscription(
            election_id=election_id, queue=asyncio.Queue(maxsize=self._queue_size)
        )
        async with self._lock:
            self._subscribers.setdefault(election_id, {})[subscription.id] = subscription
        logger.debug(f"Result subscriber {subscription.id} joined election {election_id}")
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        async with self._lock:
            self._remove(subscription)
        logger.debug(f"Result subscriber {subscription.id} left election {subscription.election_id}")

    def _remove(self, subscription: Subscription) -> None:
        election_subscribers = self._subscribers.get(subscription.election_id)
        if not election_subscribers:
            return
        election_subscribers.pop(subscription.id, None)
        if not election_subscribers:
            del self._subscribers[subscription.election_id]

    async def subscriber_count(self, election_id: str | None = None) -> int:
        async with self._lock:
            if election_id is not None:
                return len(self._subscribers.get(election_id, {}))
            return sum(len(subs) for subs in self._subscribers.values())

    async def publish(self, election_id: str, message: StreamMessage) -> int:
        """
        Deliver ``message`` to every current subscriber of an election.

        Returns:
            Number of subscribers the message was queued for.
        """
        async with self._lock:
            targets = list(self._subscribers.get(election_id, {}).values())

        delivered = 0
        slow: list[Subscription] = []
        for subscription in targets:
            try:
                subscription.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                slow.append(subscription)

        if slow:
            async with self._lock:
                for subscription in slow:
                    subscription.dropped = True
                    self._remove(subscription)
            logger.warning(
                f"Dropped {len(slow)} slow result subscriber(s) for election {election_id}"
            )
        return delivered

    async def notify_vote_update(self, election_id: str) -> None:
        """Recompute the election snapshot once and fan it out.

        Failures are logged and never propagate to the caller.
        """
        if not await self.subscriber_count(election_id):
            return
        update_lock = self._update_locks.setdefault(election_id, asyncio.Lock())
        async with update_lock:
            try:
                snapshot = await self.load_snapshot(election_id)
                await self.publish(election_id, StreamMessage(VOTE_UPDATE_EVENT, snapshot))
            except Exception:
                logger.exception(f"Failed to push result update for election {election_id}")


broker = ResultBroker()

# Strong references to in-flight notifications until they finish.
_pending_notifications: set[asyncio.Task] = set()


def get_broker() -> ResultBroker:
    return broker


def schedule_vote_update(election_id: str) -> asyncio.Task:
    """Fire-and-forget ``notify_vote_update`` on the running loop."""
    task = asyncio.get_running_loop().create_task(broker.notify_vote_update(election_id))
    _pending_notifications.add(task)
    task.add_done_callback(_pending_notifications.discard)
    return task


# ============================================
# SERVER-SENT EVENTS
# ============================================


def format_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {to_json(data)}\n\n"


async def event_stream(
    broker: ResultBroker,
    subscription: Subscription,
    initial_snapshot: dict[str, Any],
    heartbeat_seconds: float | None = None,
) -> AsyncIterator[str]:
    """
    SSE frames for one subscriber.

    Starts with the snapshot frame, then one frame per published message and a
    heartbeat comment after every ``heartbeat_seconds`` of silence. The
    subscription is always removed when the generator finishes, including when
    the client disconnects and the response task is cancelled.
    """
    heartbeat_seconds = heartbeat_seconds or settings.STREAM_HEARTBEAT_SECONDS
    try:
        yield format_sse(SNAPSHOT_EVENT, initial_snapshot)
        while True:
            try:
                message = await asyncio.wait_for(
                    subscription.queue.get(), timeout=heartbeat_seconds
                )
            except asyncio.TimeoutError:
                if subscription.dropped:
                    break
                yield HEARTBEAT_FRAME
                continue

            yield format_sse(message.event, message.data)
            if subscription.dropped and subscription.queue.empty():
                break
    finally:
        await broker.unsubscribe(subscription)
