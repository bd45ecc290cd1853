"""HTTP service, SSE transport and the broadcaster it serves."""

from .events import Broadcaster, Subscriber
from .generators import GeneratorManager, StreamGenerator
from .sse import event_stream, format_sse

__all__ = [
    "Broadcaster",
    "Subscriber",
    "GeneratorManager",
    "StreamGenerator",
    "event_stream",
    "format_sse",
]
