from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from stream_hub.web.events import Broadcaster


LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: Union[str, int] = "INFO") -> None:
    """Install a console handler on the root logger (once) and set its level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


class BroadcastLogHandler(logging.Handler):
    """Logging handler that mirrors records into a broadcaster stream.

    Each record becomes one event: ``type`` is the lower-cased level name,
    ``message`` the formatted message, and ``data`` carries the logger name
    and level. Records logged while this handler is already publishing on the
    same thread are skipped, so a hub that logs cannot recurse through it.
    """

    def __init__(self, broadcaster: "Broadcaster", stream_id: str = "logs", level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.broadcaster = broadcaster
        self.stream_id = stream_id
        self._local = threading.local()

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(self._local, "active", False):
            return
        if not self.broadcaster.is_stream_active(self.stream_id):
            return
        self._local.active = True
        try:
            self.broadcaster.publish(
                self.stream_id,
                record.levelname.lower(),
                self.format(record),
                {"logger": record.name, "level": record.levelname},
            )
        except Exception:
            self.handleError(record)
        finally:
            self._local.active = False
