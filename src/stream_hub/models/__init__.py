"""Data models for published events."""

from .event import Event, new_event_id

__all__ = ["Event", "new_event_id"]
