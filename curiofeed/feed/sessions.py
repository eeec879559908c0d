"""
Pagination sessions.

A session is the per-(user, interest) cursor that lets the blender be
called repeatedly for an infinite-scroll feed without re-delivering items:

  FRESH ──first page──▶ ACTIVE ──page with hasMore=false──▶ EXHAUSTED
    ▲                     │                                     │
    └──────── reset() (interest switch / manual refresh) ───────┘

A failed page leaves the session untouched, so the same page can be
retried. Each session carries an asyncio.Lock; exactly one feed assembly
may hold it at a time.

The store keeps sessions in LRU order and evicts entries idle for longer
than the TTL, or the least recently used ones once it is full. Sessions
held by an in-flight request are never evicted.
"""
import asyncio
import logging
import time
from collections import OrderedDict
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional

from curiofeed.schemas import ContentItem
from curiofeed.telemetry import SESSIONS_ACTIVE

logger = logging.getLogger(__name__)

SessionKey = tuple[str, str]


class SessionState(str, Enum):
    FRESH = "fresh"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class PaginationSession:
    def __init__(self, user_id: str, interest: str, now: float = 0.0) -> None:
        self.user_id = user_id
        self.interest = interest
        self.seen_urls: set[str] = set()
        self.offset = 0
        self.exhausted = False
        self.pages_served = 0
        self.last_access = now
        self.lock = asyncio.Lock()
        self._holders = 0

    @property
    def key(self) -> SessionKey:
        return (self.user_id, self.interest)

    @property
    def busy(self) -> bool:
        """True while a request holds the session or a page is being assembled."""
        return self._holders > 0 or self.lock.locked()

    @contextmanager
    def in_use(self) -> Iterator["PaginationSession"]:
        self._holders += 1
        try:
            yield self
        finally:
            self._holders -= 1

    @property
    def state(self) -> SessionState:
        if self.pages_served == 0:
            return SessionState.FRESH
        return SessionState.EXHAUSTED if self.exhausted else SessionState.ACTIVE

    def record_page(self, items: Iterable[ContentItem], has_more: bool) -> None:
        """Commit a successfully served page to the cursor."""
        served = 0
        for item in items:
            self.seen_urls.add(item.url)
            served += 1
        self.offset += served
        self.exhausted = not has_more
        self.pages_served += 1

    def reset(self) -> None:
        self.seen_urls.clear()
        self.offset = 0
        self.exhausted = False
        self.pages_served = 0

    def __repr__(self) -> str:
        return (
            f"PaginationSession(user={self.user_id!r}, interest={self.interest!r}, "
            f"state={self.state.value}, offset={self.offset}, seen={len(self.seen_urls)})"
        )


class SessionStore:
    def __init__(
        self,
        ttl_seconds: float = 1800.0,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._sessions: "OrderedDict[SessionKey, PaginationSession]" = OrderedDict()
        self._active_interest: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, user_id: str, interest: str) -> Optional[PaginationSession]:
        return self._sessions.get((user_id, interest))

    def session_for(self, user_id: str, interest: str) -> PaginationSession:
        """
        Return the user's session for `interest`, creating it if needed.

        Switching to a different interest drops the user's previous session,
        so coming back to an interest starts a fresh feed.
        """
        now = self._clock()
        self.evict(now, reserve=(user_id, interest) not in self._sessions)
        previous = self._active_interest.get(user_id)
        if previous is not None and previous != interest:
            logger.info("User %s switched interest %s → %s; resetting feed", user_id, previous, interest)
            self.discard(user_id, previous)

        key = (user_id, interest)
        session = self._sessions.get(key)
        if session is None:
            session = PaginationSession(user_id, interest, now)
            self._sessions[key] = session
        else:
            self._sessions.move_to_end(key)
        session.last_access = now
        self._active_interest[user_id] = interest
        SESSIONS_ACTIVE.set(len(self._sessions))
        return session

    async def reset(self, user_id: str, interest: str) -> bool:
        """Reset a session to FRESH, waiting for any in-flight page first."""
        session = self.get(user_id, interest)
        if session is None:
            return False
        async with session.lock:
            session.reset()
        logger.info("Reset feed session user=%s interest=%s", user_id, interest)
        return True

    def discard(self, user_id: str, interest: str) -> bool:
        session = self._sessions.pop((user_id, interest), None)
        if self._active_interest.get(user_id) == interest:
            del self._active_interest[user_id]
        SESSIONS_ACTIVE.set(len(self._sessions))
        return session is not None

    def evict(self, now: Optional[float] = None, reserve: bool = False) -> int:
        """
        Drop idle sessions past the TTL, then LRU entries over capacity.

        With `reserve`, also make room for one more session.
        """
        now = self._clock() if now is None else now
        evicted = 0
        for key, session in list(self._sessions.items()):
            over_capacity = len(self._sessions) + reserve > self.max_entries
            expired = now - session.last_access > self.ttl_seconds
            if not (expired or over_capacity):
                # Remaining entries are more recently used
                break
            if session.busy:
                continue
            self.discard(*key)
            evicted += 1
        if evicted:
            logger.debug("Evicted %d idle feed sessions", evicted)
        return evicted
