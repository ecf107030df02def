"""
Bounded in-memory store for what-if simulation sessions.

Sessions expire after an idle TTL and the least recently used session is
evicted when the store is full. All access goes through one lock.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from core.errors import SessionNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionStore(Generic[T]):

    def __init__(
        self,
        capacity: int = 256,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # session_id -> (last access time, session); most recently used last
        self._sessions: "OrderedDict[str, tuple]" = OrderedDict()

    def put(self, session_id: str, session: T) -> None:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            if session_id in self._sessions:
                self._sessions.move_to_end(session_id)
            self._sessions[session_id] = (now, session)
            while len(self._sessions) > self.capacity:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info(f"Evicted least recently used session {evicted}")

    def get(self, session_id: str) -> T:
        """Return the session and refresh its idle timer; SessionNotFoundError when absent or expired"""
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            entry = self._sessions.get(session_id)
            if entry is None:
                raise SessionNotFoundError(session_id)
            self._sessions[session_id] = (now, entry[1])
            self._sessions.move_to_end(session_id)
            return entry[1]

    def close(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def session_ids(self) -> List[str]:
        with self._lock:
            self._purge_expired(self._clock())
            return list(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self.session_ids()

    def __len__(self) -> int:
        return len(self.session_ids())

    def _purge_expired(self, now: float) -> None:
        expired = [sid for sid, (seen, _) in self._sessions.items() if now - seen > self.ttl_seconds]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.debug(f"Expired {len(expired)} idle simulation sessions")

    def stats(self) -> Dict[str, Optional[float]]:
        with self._lock:
            self._purge_expired(self._clock())
            return {
                "active_sessions": len(self._sessions),
                "capacity": self.capacity,
                "ttl_seconds": self.ttl_seconds,
            }
