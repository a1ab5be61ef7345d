# dronefleet/events.py
# ------------------------------------------------------------
# Audit event bus.
#
# - bounded log (oldest entries evicted first)
# - live fan-out: subscribers only see events published after
#   they subscribed, never a historical backfill
# ------------------------------------------------------------

from __future__ import annotations

from collections import deque
from datetime import datetime
import itertools
import logging
import threading
from typing import Callable, Deque, Dict, Generic, List, Optional, TypeVar

from .models import EventLevel, EventSource, SystemEvent, utcnow

log = logging.getLogger("dronefleet.events")

T = TypeVar("T")

DEFAULT_CAPACITY = 300


def format_event_time(ts: datetime) -> str:
    """
    Display form used by the dashboards: "2025-11-16 21:05" (local time).
    """
    return ts.astimezone().strftime("%Y-%m-%d %H:%M")


class Subscription:
    """
    Handle returned by every subscribe() call.
    Calling it (or .unsubscribe()) removes the listener; repeated calls are harmless.
    """

    def __init__(self, remove: Callable[[], None]):
        self._remove = remove
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._remove()

    __call__ = unsubscribe


class ListenerRegistry(Generic[T]):
    """
    Set of callbacks keyed by a token, notified synchronously.
    A failing listener is logged and does not stop delivery to the others.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: Dict[int, Callable[[T], None]] = {}
        self._tokens = itertools.count(1)
        self._lock = threading.Lock()

    def add(self, listener: Callable[[T], None], on_remove: Optional[Callable[[], None]] = None) -> Subscription:
        with self._lock:
            token = next(self._tokens)
            self._listeners[token] = listener

        def _remove() -> None:
            with self._lock:
                self._listeners.pop(token, None)
            if on_remove is not None:
                on_remove()

        return Subscription(_remove)

    def notify(self, payload: T) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                log.exception("%s listener failed", self.name)

    def __len__(self) -> int:
        return len(self._listeners)


class EventBus:
    """
    Append-only bounded audit log with live subscribers.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._events: Deque[SystemEvent] = deque(maxlen=capacity)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._listeners: ListenerRegistry[SystemEvent] = ListenerRegistry("event")

    def publish(
        self,
        title: str,
        level: EventLevel = "info",
        source: EventSource = "system",
        timestamp: Optional[datetime] = None,
    ) -> SystemEvent:
        ts = timestamp or utcnow()
        with self._lock:
            event = SystemEvent(
                id=next(self._ids),
                timestamp=ts,
                time=format_event_time(ts),
                title=title,
                level=level,
                source=source,
            )
            self._events.append(event)

        log.debug("event #%d [%s/%s] %s", event.id, level, source, title)
        self._listeners.notify(event)
        return event

    def recent(self, limit: int = 50) -> List[SystemEvent]:
        """
        Up to `limit` events, newest first.
        """
        if limit <= 0:
            return []
        with self._lock:
            items = list(self._events)
        return list(reversed(items[-limit:]))

    def subscribe(self, listener: Callable[[SystemEvent], None]) -> Subscription:
        return self._listeners.add(listener)

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def __len__(self) -> int:
        return len(self._events)
