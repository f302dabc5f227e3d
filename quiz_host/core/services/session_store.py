"""Service for keeping participant session context between page loads."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
import secrets
from threading import Lock
from typing import Callable

from quiz_host.constants.network_constants import SESSION_IDLE_TIMEOUT_SECONDS
from quiz_host.core.models import ParticipantSession

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class _SessionEntry:
    session: ParticipantSession
    last_seen: datetime


class SessionStore:
    """Maps opaque browser tokens to typed participant sessions.

    A session that has not been looked up for ``idle_timeout_seconds`` is
    dropped the next time the store is used.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utc_now,
        idle_timeout_seconds: int = SESSION_IDLE_TIMEOUT_SECONDS,
    ) -> None:
        self._sessions: dict[str, _SessionEntry] = {}
        self._lock = Lock()
        self._clock = clock
        self._idle_timeout = timedelta(seconds=idle_timeout_seconds)

    def get(self, token: str | None) -> ParticipantSession | None:
        if not token:
            return None
        with self._lock:
            self._evict_idle()
            entry = self._sessions.get(token)
            if entry is None:
                return None
            entry.last_seen = self._clock()
            return entry.session

    def get_or_create(self, token: str | None) -> tuple[str, ParticipantSession]:
        """Return the session for ``token``, creating a fresh one when unknown."""
        with self._lock:
            self._evict_idle()
            entry = self._sessions.get(token) if token else None
            if entry is not None:
                entry.last_seen = self._clock()
                return token, entry.session
            new_token = secrets.token_urlsafe(24)
            session = ParticipantSession()
            self._sessions[new_token] = _SessionEntry(session, self._clock())
            return new_token, session

    def __len__(self) -> int:
        with self._lock:
            self._evict_idle()
            return len(self._sessions)

    def _evict_idle(self) -> None:
        cutoff = self._clock() - self._idle_timeout
        stale = [token for token, entry in self._sessions.items() if entry.last_seen < cutoff]
        for token in stale:
            del self._sessions[token]
        if stale:
            logger.debug("Dropped %d idle session(s)", len(stale))
