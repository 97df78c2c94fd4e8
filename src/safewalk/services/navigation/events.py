"""Sinks that receive navigation events for presentation elsewhere."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, List, Optional, Protocol

from ...config import settings
from .models import NavigationEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def emit(self, event: NavigationEvent) -> None:
        ...


class LoggingEventSink:
    """Default sink: records events in the application log only."""

    def emit(self, event: NavigationEvent) -> None:
        logger.info(f"[{event.session_id}] {event.kind}: {event.payload}")


class CollectingEventSink:
    """Keeps the most recent events in memory until a client drains them."""

    def __init__(self, max_events: Optional[int] = None) -> None:
        self._events: Deque[NavigationEvent] = deque(maxlen=max_events or settings.max_session_events)
        self._lock = threading.Lock()

    def emit(self, event: NavigationEvent) -> None:
        with self._lock:
            self._events.append(event)

    def drain(self) -> List[NavigationEvent]:
        with self._lock:
            events = list(self._events)
            self._events.clear()
        return events

    @property
    def events(self) -> List[NavigationEvent]:
        with self._lock:
            return list(self._events)
