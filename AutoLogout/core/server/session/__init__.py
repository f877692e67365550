"""
Server-side session authority.

Answers "how long until the warning", records keep-alives and activity, and
terminates sessions. Sessions live in memory; a persistent store is out of
scope.

A session's countdown runs from its last activity. The warning is due after
the idle timeout; the session itself lapses once the padding has also run
out, which leaves the client's dialog its full grace period.
"""

import logging
import math
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from AutoLogout.core.exceptions import SessionExpired
from AutoLogout.core.policy import TimeoutPolicy

logger = logging.getLogger(__name__)


@dataclass
class UserSession:
    """
    A user session with its policy and activity timestamps.

    Attributes:
        session_id: Opaque identifier
        user_id: Owner of the session
        policy: Timeout policy resolved at session start
        last_active: Timestamp of the last activity or keep-alive
        created_at: Session creation timestamp
        roles: Roles the policy was resolved for
    """
    session_id: str
    user_id: str
    policy: TimeoutPolicy
    last_active: float
    created_at: float
    roles: Tuple[str, ...] = field(default_factory=tuple)

    def idle_time(self, now: float) -> float:
        return now - self.last_active

    def time_left(self, now: float) -> int:
        """Seconds until the warning is due, rounded up; 0 means warn now."""
        remaining = self.policy.idle_timeout_seconds - self.idle_time(now)
        return max(0, math.ceil(remaining))

    def is_expired(self, now: float) -> bool:
        limit = self.policy.idle_timeout_seconds + self.policy.warning_padding_seconds
        return self.idle_time(now) > limit


class InMemorySessionAuthority:
    """
    In-memory session authority.

    Guarded by a lock, since uvicorn may serve the sync activity middleware
    and the async routes from different threads.
    """

    def __init__(self, time_source: Callable[[], float] = time.time):
        """
        Initialize the authority.

        Args:
            time_source: Wall clock in seconds (replaceable in tests)
        """
        self._sessions: Dict[str, UserSession] = {}
        self._time = time_source
        self._lock = threading.Lock()

    def open(self, user_id: str, policy: TimeoutPolicy, roles: Tuple[str, ...] = ()) -> UserSession:
        """Start a session for a user and return it."""
        now = self._time()
        session = UserSession(
            session_id=uuid.uuid4().hex,
            user_id=user_id,
            policy=policy,
            last_active=now,
            created_at=now,
            roles=tuple(roles),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("Opened session %s for user %s", session.session_id, user_id)
        return session

    def get(self, session_id: str) -> UserSession:
        """
        Look up a live session. Lapsed sessions are dropped on access.

        Raises:
            SessionExpired: unknown, terminated or lapsed session
        """
        with self._lock:
            return self._live(session_id, self._time())

    def _live(self, session_id: str, now: float) -> UserSession:
        # Caller holds self._lock.
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionExpired("Unknown session", {"session_id": session_id})
        if session.is_expired(now):
            del self._sessions[session_id]
            logger.info("Session %s of user %s lapsed", session_id, session.user_id)
            raise SessionExpired("Session lapsed", {"session_id": session_id})
        return session

    def remaining(self, session_id: str) -> int:
        """Seconds until the warning is due. Does not count as activity."""
        with self._lock:
            now = self._time()
            return self._live(session_id, now).time_left(now)

    def touch(self, session_id: str) -> UserSession:
        """Record activity (keep-alive or an ordinary request)."""
        with self._lock:
            now = self._time()
            session = self._live(session_id, now)
            session.last_active = now
        logger.debug("Session %s touched", session_id)
        return session

    def terminate(self, session_id: str) -> UserSession:
        """
        End a session.

        Raises:
            SessionExpired: the session was already gone
        """
        with self._lock:
            session = self._live(session_id, self._time())
            del self._sessions[session_id]
        logger.info("Terminated session %s of user %s", session_id, session.user_id)
        return session

    def cleanup_expired(self) -> List[str]:
        """Remove every lapsed session; returns their ids."""
        now = self._time()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("Cleaned up %d lapsed sessions", len(expired))
        return expired

    def find(self, session_id: str) -> Optional[UserSession]:
        """Session by id without expiry checks."""
        with self._lock:
            return self._sessions.get(session_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
