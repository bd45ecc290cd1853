from .log import BroadcastLogHandler, configure_logging

__all__ = ["BroadcastLogHandler", "configure_logging"]
