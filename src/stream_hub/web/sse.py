from __future__ import annotations

import json
from typing import AsyncIterator

from stream_hub.models import Event
from .events import Broadcaster


def format_sse(event: Event) -> bytes:
    """Render one event as a single SSE ``data:`` frame."""
    body = json.dumps(event.to_wire(), separators=(",", ":"))
    return f"data: {body}\n\n".encode("utf-8")


def connected_event(stream_id: str) -> Event:
    return Event(
        id="connected",
        type="connection",
        message=f"Connected to stream: {stream_id}",
        data={"stream_id": stream_id},
        stream_id=stream_id,
    )


async def event_stream(broadcaster: Broadcaster, stream_id: str) -> AsyncIterator[bytes]:
    """Yield SSE frames for ``stream_id`` until the subscriber is removed.

    The subscriber is always released on exit, whether the client went away
    (task cancelled), the hub dropped it, or the caller closed the generator.
    """
    subscriber = broadcaster.subscribe(stream_id)
    try:
        yield format_sse(connected_event(stream_id))
        while True:
            # Idle clients wait on the loop, not on a worker thread
            event = await subscriber.receive_async()
            if event is None:
                break
            yield format_sse(event)
    finally:
        broadcaster.unsubscribe(subscriber.id)
