from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from .events import Broadcaster


logger = logging.getLogger(__name__)

DEMO_EVENTS: List[Tuple[str, str, Dict[str, Any]]] = [
    ("demo_notification", "Stream notification", {"priority": "low"}),
    ("demo_metric", "Metric update", {"value": 42}),
    ("demo_alert", "System alert", {"level": "info"}),
    ("demo_update", "Data updated", {"records": 100}),
]


class StreamGenerator:
    """Periodically publishes rotating demo events to one stream.

    Runs on a daemon thread that sleeps on a stop event, so ``stop()`` takes
    effect immediately rather than after the current interval.
    """

    def __init__(self, stream_id: str, broadcaster: Broadcaster, interval: float = 3.0) -> None:
        self.stream_id = stream_id
        self.broadcaster = broadcaster
        self.interval = interval
        self.emitted = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        t = self._thread
        return t is not None and t.is_alive()

    def start(self) -> bool:
        """Start the generator thread. Returns False if it was already running."""
        with self._lock:
            if self.running:
                return False
            # Fresh event per run so a late stop() can't leak into a restart
            self._stop = threading.Event()
            t = threading.Thread(
                target=self._run,
                args=(self._stop,),
                name=f"generator-{self.stream_id}",
                daemon=True,
            )
            self._thread = t
            t.start()
        logger.info("Generator started for stream %s (every %.1fs)", self.stream_id, self.interval)
        return True

    def stop(self, timeout: float = 5.0) -> bool:
        with self._lock:
            t = self._thread
            if t is None:
                return False
            self._stop.set()
            self._thread = None
        t.join(timeout)
        logger.info("Generator stopped for stream %s after %d events", self.stream_id, self.emitted)
        return True

    def emit(self) -> int:
        """Publish the next demo event; returns the number of subscribers reached."""
        event_type, message, base = DEMO_EVENTS[self.emitted % len(DEMO_EVENTS)]
        self.emitted += 1
        data = dict(base)
        data.update(
            {
                "timestamp": int(time.time()),
                "service": "stream_hub",
                "demo_id": self.emitted,
            }
        )
        return self.broadcaster.publish(self.stream_id, event_type, message, data)

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval):
            try:
                self.emit()
            except Exception:
                logger.exception("Generator for stream %s failed to publish", self.stream_id)


class GeneratorManager:
    def __init__(self, broadcaster: Broadcaster, interval: float = 3.0) -> None:
        self.broadcaster = broadcaster
        self.interval = interval
        self._generators: Dict[str, StreamGenerator] = {}
        self._lock = threading.Lock()

    def start(self, stream_id: str) -> bool:
        """Start (or restart) the generator for ``stream_id``.

        Returns True when a new generator was created, False when an existing
        one was reused.
        """
        with self._lock:
            gen = self._generators.get(stream_id)
            created = gen is None
            if gen is None:
                gen = StreamGenerator(stream_id, self.broadcaster, interval=self.interval)
                self._generators[stream_id] = gen
        gen.start()
        return created

    def stop(self, stream_id: str) -> bool:
        with self._lock:
            gen = self._generators.pop(stream_id, None)
        if gen is None:
            return False
        gen.stop()
        return True

    def get(self, stream_id: str) -> Optional[StreamGenerator]:
        with self._lock:
            return self._generators.get(stream_id)

    def statuses(self) -> Dict[str, bool]:
        with self._lock:
            gens = list(self._generators.items())
        return {sid: g.running for sid, g in gens}

    def stop_all(self) -> None:
        with self._lock:
            gens = list(self._generators.values())
            self._generators.clear()
        for g in gens:
            g.stop()
