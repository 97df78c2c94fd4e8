"""In-memory registry of live navigation sessions for the HTTP layer."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional

from ...config import settings
from ...models.domain import Route, RoutePreference
from ..routing.service import RouteAssembler
from .events import CollectingEventSink
from .session import NavigationSession

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    """Raised when a session id is unknown or already removed."""


class SessionRegistry:
    """Holds sessions by id; each session gets its own lock so calls on it are serialized.

    Sessions untouched for longer than ``idle_timeout_seconds`` are ended and
    dropped the next time a session is created or fetched.
    """

    def __init__(
        self,
        assembler: RouteAssembler,
        *,
        session_factory: Optional[Callable[..., NavigationSession]] = None,
        idle_timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.assembler = assembler
        self._factory = session_factory or NavigationSession
        self.idle_timeout_seconds = (
            idle_timeout_seconds if idle_timeout_seconds is not None else settings.session_idle_timeout_seconds
        )
        self._clock = clock
        self._sessions: Dict[str, NavigationSession] = {}
        self._sinks: Dict[str, CollectingEventSink] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._touched: Dict[str, float] = {}
        self._guard = threading.Lock()

    def create(self, route: Route, preference: RoutePreference | str | None = None) -> NavigationSession:
        self._evict_idle()
        sink = CollectingEventSink()
        session = self._factory(self.assembler, event_sink=sink)
        session.start(route, preference)
        with self._guard:
            self._sessions[session.session_id] = session
            self._sinks[session.session_id] = sink
            self._locks[session.session_id] = threading.Lock()
            self._touched[session.session_id] = self._clock()
        return session

    def get(self, session_id: str) -> NavigationSession:
        self._evict_idle()
        with self._guard:
            session = self._sessions.get(session_id)
            if session is not None:
                self._touched[session_id] = self._clock()
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def events(self, session_id: str) -> CollectingEventSink:
        with self._guard:
            sink = self._sinks.get(session_id)
        if sink is None:
            raise SessionNotFound(session_id)
        return sink

    @contextmanager
    def locked(self, session_id: str) -> Iterator[NavigationSession]:
        with self._guard:
            lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFound(session_id)
        with lock:
            yield self.get(session_id)

    def end(self, session_id: str) -> None:
        with self.locked(session_id) as session:
            session.end()
        self._discard(session_id)
        logger.info(f"Removed navigation session {session_id}")

    def _discard(self, session_id: str) -> None:
        with self._guard:
            self._sessions.pop(session_id, None)
            self._sinks.pop(session_id, None)
            self._locks.pop(session_id, None)
            self._touched.pop(session_id, None)

    def _evict_idle(self) -> None:
        now = self._clock()
        with self._guard:
            idle = [
                session_id
                for session_id, touched in self._touched.items()
                if now - touched > self.idle_timeout_seconds
            ]
            candidates = [(session_id, self._sessions[session_id], self._locks[session_id]) for session_id in idle]
        for session_id, session, lock in candidates:
            # a session busy in another request is not idle
            if not lock.acquire(blocking=False):
                continue
            try:
                session.end()
            finally:
                lock.release()
            self._discard(session_id)
            logger.info(f"Evicted navigation session {session_id} after {self.idle_timeout_seconds:.0f}s idle")

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)
