"""Realtime notification boundary for conversation events.

The auto-reply engine publishes a 'new-chat-message' event on the
conversation's channel after an automated reply is stored. Publishing is
best-effort: a failed publish is logged and never changes the outcome of
the job.

ChannelBroadcaster is the in-process implementation. Each subscriber
gets its own asyncio.Queue, fed from whatever thread the publisher runs
on; the SSE route drains the queue for a connected browser.
"""

import asyncio
import logging
from typing import Any, Protocol

from src.db.models import ChatMessage

logger = logging.getLogger(__name__)

NEW_CHAT_MESSAGE_EVENT = "new-chat-message"


class NotificationPublisher(Protocol):
    """Anything that can push an event to a named channel."""

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        ...


def conversation_channel(conversation_id: str) -> str:
    """Channel name for events about one conversation."""
    return f"conversation-{conversation_id}"


def message_payload(message: ChatMessage) -> dict[str, Any]:
    """Serialize a chat message for a new-chat-message event."""
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "from_client": message.from_client,
        "source": message.source,
        "content": message.content,
        "created_at": message.created_at,
    }


class ChannelBroadcaster:
    """In-process fan-out of channel events to asyncio queues.

    Multiple subscribers per channel are supported (several browser tabs
    on the same conversation). Queues are unbounded.
    """

    def __init__(self) -> None:
        self._subscribers: dict[
            str, list[tuple[asyncio.Queue[dict[str, Any]], asyncio.AbstractEventLoop | None]]
        ] = {}

    def subscribe(self, channel: str) -> asyncio.Queue[dict[str, Any]]:
        """Register a new queue on a channel.

        Args:
            channel: Channel name, e.g. 'conversation-<id>'.

        Returns:
            asyncio.Queue receiving {'event', 'data'} dicts.
        """
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._subscribers.setdefault(channel, []).append((queue, loop))
        logger.debug("Subscribed to channel %s", channel)
        return queue

    def unsubscribe(self, channel: str, queue: asyncio.Queue) -> None:
        """Remove one queue from a channel. No-op if it is not registered."""
        entries = self._subscribers.get(channel)
        if not entries:
            return
        remaining = [entry for entry in entries if entry[0] is not queue]
        if remaining:
            self._subscribers[channel] = remaining
        else:
            del self._subscribers[channel]
        logger.debug("Unsubscribed from channel %s", channel)

    def has_subscribers(self, channel: str) -> bool:
        return bool(self._subscribers.get(channel))

    def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        """Deliver an event to every queue subscribed to the channel."""
        item = {"event": event, "data": payload}
        for queue, loop in list(self._subscribers.get(channel, [])):
            if loop is not None and loop.is_running():
                loop.call_soon_threadsafe(queue.put_nowait, item)
            else:
                queue.put_nowait(item)


def publish_best_effort(
    publisher: NotificationPublisher | None,
    channel: str,
    event: str,
    payload: dict[str, Any],
) -> bool:
    """Publish an event, logging and swallowing any publisher failure.

    Returns:
        True if the publisher accepted the event.
    """
    if publisher is None:
        return False
    try:
        publisher.publish(channel, event, payload)
    except Exception as e:
        logger.warning("Failed to publish %s on %s: %s", event, channel, e)
        return False
    return True


# Shared broadcaster used by the API process.
broadcaster = ChannelBroadcaster()
