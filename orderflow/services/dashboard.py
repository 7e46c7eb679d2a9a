"""
Dashboard Sessions

A DashboardSession is the explicit state one open admin dashboard needs:
its own feed cursor and its own notification list. Sessions never share
state, so two staff members each get their own alerts and read marks.

Polls on one session may overlap. Every poll numbers its read before
taking the snapshot, and the cursor ignores a snapshot older than the
last one it accepted, so a slow poll can never roll the baseline back.
Sessions that stop polling are evicted after the configured idle TTL.
"""

import itertools
import logging
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator, Optional, Sequence

from fastapi.concurrency import run_in_threadpool

from orderflow.core.exceptions import NotFound
from orderflow.services.feed import FeedCursor, FeedDelta, OrderSnapshot
from orderflow.services.notifications import (
    BaseAlertSink,
    NotificationCenter,
    NotificationDispatcher,
)

logger = logging.getLogger(__name__)


@dataclass
class DashboardSession:
    id: str
    cursor: FeedCursor
    center: NotificationCenter
    dispatcher: NotificationDispatcher
    located: deque = field(default_factory=lambda: deque(maxlen=10))
    clock: Callable[[], float] = time.monotonic
    last_seen: float = field(default=0.0, init=False)
    _reads: Iterator[int] = field(default_factory=lambda: itertools.count(1), init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self):
        self.touch()

    def touch(self) -> None:
        self.last_seen = self.clock()

    def begin_read(self) -> int:
        """Number the next snapshot read; later reads get larger numbers."""
        return next(self._reads)

    def refresh(self, snapshot: Sequence[OrderSnapshot], sequence: Optional[int] = None) -> FeedDelta:
        """Diff the snapshot against this session's cursor and dispatch the delta."""
        with self._lock:
            delta = self.cursor.observe(snapshot, sequence)
            if not delta.is_empty:
                self.dispatcher.dispatch(delta)
        self.touch()
        return delta

    async def poll(
        self, load: Callable[[], Awaitable[Sequence[OrderSnapshot]]]
    ) -> tuple[FeedDelta, Sequence[OrderSnapshot]]:
        """
        Read a snapshot with `load` and refresh from it.

        Alert sinks are synchronous, so the diff and dispatch run in the
        threadpool and a slow sink never stalls the event loop.
        """
        sequence = self.begin_read()
        snapshot = await load()
        delta = await run_in_threadpool(self.refresh, snapshot, sequence)
        return delta, snapshot


class SessionRegistry:
    """Open dashboard sessions keyed by an opaque id."""

    def __init__(
        self,
        sink: BaseAlertSink,
        window: int = 50,
        capacity: int = 10,
        on_new_order: Optional[Callable[[str, int], None]] = None,
        session_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sink = sink
        self.window = window
        self.capacity = capacity
        self.on_new_order = on_new_order
        self.session_ttl = session_ttl
        self.clock = clock
        self._sessions: dict[str, DashboardSession] = {}

    def evict_idle(self) -> int:
        """Drop sessions not seen within the TTL. Returns how many were dropped."""
        if self.session_ttl is None:
            return 0
        cutoff = self.clock() - self.session_ttl
        idle = [sid for sid, s in self._sessions.items() if s.last_seen < cutoff]
        for session_id in idle:
            del self._sessions[session_id]
            logger.info(f"Dashboard session {session_id} evicted after {self.session_ttl}s idle")
        return len(idle)

    def open(self) -> DashboardSession:
        self.evict_idle()
        session_id = uuid.uuid4().hex
        located: deque = deque(maxlen=self.capacity)

        def new_order(order_id: int) -> None:
            if self.on_new_order is not None:
                self.on_new_order(session_id, order_id)

        center = NotificationCenter(capacity=self.capacity, on_locate=located.append)
        session = DashboardSession(
            id=session_id,
            cursor=FeedCursor(window=self.window),
            center=center,
            dispatcher=NotificationDispatcher(
                center, self.sink, on_new_order=new_order, session_id=session_id
            ),
            located=located,
            clock=self.clock,
        )
        self._sessions[session_id] = session
        logger.info(f"Dashboard session {session_id} opened")
        return session

    def get(self, session_id: str) -> DashboardSession:
        self.evict_idle()
        try:
            session = self._sessions[session_id]
        except KeyError:
            raise NotFound(f"Dashboard session {session_id} not found")
        session.touch()
        return session

    def close(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise NotFound(f"Dashboard session {session_id} not found")
        logger.info(f"Dashboard session {session_id} closed")

    def __len__(self) -> int:
        return len(self._sessions)
