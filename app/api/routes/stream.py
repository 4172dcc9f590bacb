"""Server-sent event stream of live election results."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.core.config import settings
from app.services.result_stream import ResultBroker, event_stream, get_broker

router = APIRouter(prefix="/stream", tags=["Results"])


@router.get("/elections/{election_id}/results")
async def stream_results(
    election_id: UUID,
    broker: Annotated[ResultBroker, Depends(get_broker)],
):
    """
    Subscribe to live results of an election.

    Sends a ``snapshot`` event immediately, a ``vote_update`` event after
    every cast ballot, and a heartbeat comment while idle.
    """
    subscription = await broker.subscribe(str(election_id))
    try:
        snapshot = await broker.load_snapshot(str(election_id))
    except Exception:
        await broker.unsubscribe(subscription)
        raise

    return StreamingResponse(
        event_stream(broker, subscription, snapshot, settings.STREAM_HEARTBEAT_SECONDS),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
