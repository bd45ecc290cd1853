"""Event model shared by publishers and stream consumers."""

from __future__ import annotations

import time
import uuid
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def new_event_id() -> str:
    return uuid.uuid4().hex


class Event(BaseModel):
    """A single published event.

    Events are frozen once built; every subscriber of a stream receives the
    same instance. ``stream_id`` is ``None`` for events sent to all streams.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_event_id)
    type: str
    message: str
    data: Optional[Dict[str, Any]] = None
    timestamp: int = Field(default_factory=lambda: int(time.time()))
    stream_id: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with empty ``data`` and ``stream_id`` omitted."""
        return self.model_dump(mode="json", exclude_none=True)
