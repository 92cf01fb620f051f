"""FastAPI route for conversation event streaming.

Streams 'new-chat-message' events (published when an automated reply is
stored) to browsers over Server-Sent Events.
"""

import asyncio
import json
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from sse_starlette.sse import EventSourceResponse

from src.db.connection import get_db
from src.db.models import Conversation
from src.services.realtime_notifier import broadcaster, conversation_channel

router = APIRouter(tags=["conversations"])

_PING_INTERVAL_SECONDS = 15.0


async def _event_generator(
    request: Request,
    channel: str,
    queue: asyncio.Queue,
) -> AsyncGenerator[dict, None]:
    """Yield queued channel events, with a ping after 15 idle seconds.

    Args:
        request: Request used for disconnect detection.
        channel: Broadcaster channel the queue is subscribed to.
        queue: Subscriber queue receiving {'event', 'data'} dicts.

    Yields:
        SSE dicts with 'event' and 'data' keys.
    """
    try:
        while True:
            if await request.is_disconnected():
                break
            try:
                item = await asyncio.wait_for(
                    queue.get(), timeout=_PING_INTERVAL_SECONDS
                )
                yield {"event": item["event"], "data": json.dumps(item["data"])}
            except asyncio.TimeoutError:
                yield {"event": "ping", "data": "{}"}
    finally:
        broadcaster.unsubscribe(channel, queue)


@router.get("/conversations/{conversation_id}/events/stream")
async def stream_conversation_events(
    request: Request,
    conversation_id: str,
    db: Session = Depends(get_db),
) -> EventSourceResponse:
    """Stream a conversation's events via Server-Sent Events.

    Raises:
        HTTPException: If the conversation does not exist (404).
    """
    if db.get(Conversation, conversation_id) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    channel = conversation_channel(conversation_id)
    queue = broadcaster.subscribe(channel)
    return EventSourceResponse(
        _event_generator(request, channel, queue),
        media_type="text/event-stream",
    )
