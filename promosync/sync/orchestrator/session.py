"""
Sync sessions.

A session remembers which entity types were already synchronized so that
overlapping or repeated triggers sharing the session do not sync them twice.
Sessions idle for longer than the configured TTL are expired, so a caller
that never ends its session does not keep it forever.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Thread-safe registry of active sync sessions."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, Set[str]] = {}
        self._started: Dict[str, datetime] = {}
        self._touched: Dict[str, datetime] = {}

    def _open_locked(self, session_id: str, now: datetime) -> None:
        if session_id not in self._sessions:
            self._sessions[session_id] = set()
            self._started[session_id] = now
            logger.debug(f"Started sync session {session_id}")
        self._touched[session_id] = now

    def _expire_locked(self, now: datetime) -> List[str]:
        if self.ttl_seconds is None:
            return []
        cutoff = now - timedelta(seconds=self.ttl_seconds)
        expired = [sid for sid, touched in self._touched.items() if touched < cutoff]
        for sid in expired:
            self._sessions.pop(sid, None)
            self._started.pop(sid, None)
            self._touched.pop(sid, None)
        return expired

    def begin_session(self, session_id: Optional[str] = None) -> str:
        """Open a session (or rejoin an open one) and return its id."""
        session_id = session_id or f"sync-{uuid.uuid4().hex[:12]}"
        with self._lock:
            now = self._clock()
            expired = self._expire_locked(now)
            self._open_locked(session_id, now)
        if expired:
            logger.info(f"Expired {len(expired)} idle sync session(s): {', '.join(expired)}")
        return session_id

    def end_session(self, session_id: str) -> bool:
        """
        Close a session.

        Returns:
            False when the session is unknown or already closed
        """
        with self._lock:
            synced = self._sessions.pop(session_id, None)
            self._started.pop(session_id, None)
            self._touched.pop(session_id, None)
        if synced is None:
            return False
        logger.debug(f"Ended sync session {session_id} ({len(synced)} entity types synced)")
        return True

    def expire_stale(self) -> int:
        """Drop sessions idle for longer than the TTL; returns how many were dropped."""
        with self._lock:
            expired = self._expire_locked(self._clock())
        if expired:
            logger.info(f"Expired {len(expired)} idle sync session(s): {', '.join(expired)}")
        return len(expired)

    def is_synced(self, session_id: str, entity_type: str) -> bool:
        with self._lock:
            return entity_type in self._sessions.get(session_id, ())

    def mark_synced(self, session_id: str, entity_type: str) -> None:
        with self._lock:
            self._open_locked(session_id, self._clock())
            self._sessions[session_id].add(entity_type)

    def synced_entities(self, session_id: str) -> List[str]:
        with self._lock:
            return sorted(self._sessions.get(session_id, ()))

    def active_sessions(self) -> List[str]:
        with self._lock:
            return sorted(self._sessions, key=lambda sid: self._started[sid])

    def describe(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            if session_id not in self._sessions:
                return None
            return {
                "session_id": session_id,
                "started_at": self._started[session_id].isoformat(),
                "last_activity_at": self._touched[session_id].isoformat(),
                "synced_entities": sorted(self._sessions[session_id]),
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = ["SessionManager"]
