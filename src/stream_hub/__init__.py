"""In-process multi-stream event broadcaster with an SSE HTTP surface."""

from stream_hub.models import Event
from stream_hub.web.events import Broadcaster, Subscriber

__all__ = ["Broadcaster", "Event", "Subscriber"]
__version__ = "0.1.0"
