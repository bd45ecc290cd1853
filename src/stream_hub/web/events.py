from __future__ import annotations

import asyncio
import itertools
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from stream_hub.config import DEFAULT_QUEUE_SIZE
from stream_hub.models import Event


logger = logging.getLogger(__name__)

# Placed in a subscriber's queue on removal to wake a blocked receive()
_CLOSED = object()


@dataclass(eq=False)
class Subscriber:
    """One consumer's registration to a stream plus its private bounded queue.

    Many publishers may offer into the queue concurrently; exactly one consumer
    reads from it, either from a thread with ``receive()`` or from a coroutine
    with ``receive_async()``. When the queue is full the incoming event is
    dropped (newest-drop) and ``dropped`` is incremented.
    """

    id: str
    stream_id: str
    capacity: int = DEFAULT_QUEUE_SIZE
    dropped: int = 0
    _queue: "queue.Queue[object]" = field(init=False, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _waiter: Optional[Tuple[asyncio.AbstractEventLoop, asyncio.Event]] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._queue = queue.Queue(maxsize=self.capacity)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        if self._closed:
            return 0
        return self._queue.qsize()

    def offer(self, event: Event) -> bool:
        """Enqueue without blocking. Returns False if the event was dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            with self._lock:
                self.dropped += 1
            return False
        self._wake()
        return True

    def receive(self, timeout: Optional[float] = None) -> Optional[Event]:
        """Block the calling thread until the next event arrives.

        Returns ``None`` once the subscriber has been removed. Raises
        ``queue.Empty`` if ``timeout`` elapses first.
        """
        if self._closed:
            return None
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    async def receive_async(self) -> Optional[Event]:
        """Wait on the running event loop for the next event.

        No thread is held while waiting; publishers wake the loop through
        ``call_soon_threadsafe``. Returns ``None`` once the subscriber has
        been removed.
        """
        loop = asyncio.get_running_loop()
        while True:
            if self._closed:
                return None
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                pass
            else:
                return None if item is _CLOSED else item  # type: ignore[return-value]
            ready = asyncio.Event()
            with self._lock:
                self._waiter = (loop, ready)
            try:
                # Re-check after registering so a put between the two steps is not missed
                if self._queue.empty() and not self._closed:
                    await ready.wait()
            finally:
                with self._lock:
                    self._waiter = None

    def drain(self) -> List[Event]:
        """Return every pending event in FIFO order without blocking."""
        out: List[Event] = []
        if self._closed:
            return out
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is _CLOSED:
                break
            out.append(item)  # type: ignore[arg-type]
        return out

    def close(self) -> None:
        """Discard pending events and wake any waiting consumer. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        # Publishers that passed the closed check may still race a put in;
        # keep evicting until only the marker is left.
        while True:
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    break
            try:
                self._queue.put_nowait(_CLOSED)
                break
            except queue.Full:
                continue
        self._wake()

    def _wake(self) -> None:
        with self._lock:
            waiter = self._waiter
        if waiter is None:
            return
        loop, ready = waiter
        try:
            loop.call_soon_threadsafe(ready.set)
        except RuntimeError:
            # Loop already closed; its consumer is gone with it
            logger.debug("Subscriber %s: consumer loop closed before wake-up", self.id)


class Broadcaster:
    """Thread-safe multi-stream pub/sub hub.

    - ``subscribe(stream_id)`` registers a consumer and hands back its queue.
    - ``publish``/``publish_to_all`` fan an event out without ever blocking;
      a subscriber whose queue is full simply misses that event.
    - ``unsubscribe`` is idempotent and safe against in-flight publishes.

    Instances are independent; the application owns one and passes it to
    whatever needs to publish or consume.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._streams: Dict[str, Dict[str, Subscriber]] = {}
        self._subscribers: Dict[str, Subscriber] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, stream_id: str) -> Subscriber:
        with self._lock:
            sub = Subscriber(id=f"sub_{next(self._ids)}", stream_id=stream_id, capacity=self.queue_size)
            self._subscribers[sub.id] = sub
            self._streams.setdefault(stream_id, {})[sub.id] = sub
        # Log outside the lock: a log handler may publish back into this hub
        logger.debug("Subscriber %s joined stream %s", sub.id, stream_id)
        return sub

    def unsubscribe(self, subscriber_id: str) -> bool:
        with self._lock:
            sub = self._subscribers.pop(subscriber_id, None)
            if sub is None:
                return False
            members = self._streams.get(sub.stream_id)
            if members is not None:
                members.pop(subscriber_id, None)
                if not members:
                    del self._streams[sub.stream_id]
        sub.close()
        logger.debug("Subscriber %s left stream %s (dropped=%d)", sub.id, sub.stream_id, sub.dropped)
        return True

    def publish(
        self,
        stream_id: str,
        event_type: str,
        message: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Send an event to every current subscriber of ``stream_id``.

        Returns how many subscribers accepted it. Publishing to a stream with
        no subscribers is a no-op.
        """
        with self._lock:
            members = list(self._streams.get(stream_id, {}).values())
        if not members:
            return 0
        event = self._build_event(event_type, message, data, stream_id)
        return self._fan_out(members, event)

    def publish_to_all(
        self,
        event_type: str,
        message: str,
        data: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Send an event to every subscriber of every stream."""
        with self._lock:
            members = list(self._subscribers.values())
        if not members:
            return 0
        event = self._build_event(event_type, message, data, None)
        return self._fan_out(members, event)

    def subscriber_count(self, stream_id: str) -> int:
        with self._lock:
            return len(self._streams.get(stream_id, ()))

    def is_stream_active(self, stream_id: str) -> bool:
        with self._lock:
            return bool(self._streams.get(stream_id))

    def total_subscribers(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def stream_count(self) -> int:
        with self._lock:
            return len(self._streams)

    def active_streams(self) -> Dict[str, int]:
        with self._lock:
            return {sid: len(members) for sid, members in self._streams.items()}

    def stream_subscribers(self, stream_id: str) -> List[Subscriber]:
        with self._lock:
            return list(self._streams.get(stream_id, {}).values())

    def close(self) -> None:
        """Remove every subscriber, waking any consumer blocked on its queue."""
        with self._lock:
            subs = list(self._subscribers.values())
            self._subscribers.clear()
            self._streams.clear()
        for sub in subs:
            sub.close()
        if subs:
            logger.info("Broadcaster closed; released %d subscribers", len(subs))

    @staticmethod
    def _build_event(
        event_type: str,
        message: str,
        data: Optional[Mapping[str, Any]],
        stream_id: Optional[str],
    ) -> Event:
        # Keys are coerced to str so any mapping builds a valid event
        return Event(
            type=str(event_type),
            message=str(message),
            data={str(k): v for k, v in data.items()} if data else None,
            stream_id=stream_id,
        )

    @staticmethod
    def _fan_out(members: List[Subscriber], event: Event) -> int:
        delivered = 0
        for sub in members:
            # Each subscriber owns its copy; a consumer editing ``data`` stays local
            if sub.offer(event.model_copy(deep=True)):
                delivered += 1
        return delivered
