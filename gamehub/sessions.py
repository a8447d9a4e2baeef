"""In-memory server-side sessions for browser clients."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

SESSION_COOKIE_NAME = "gamehub_session"
SESSION_TTL = timedelta(minutes=30)


@dataclass(frozen=True)
class SessionIdentity:
    """Identity stored against a session id."""

    session_id: str
    user_id: str
    username: str
    last_activity: datetime
    expires_at: datetime


@dataclass
class _SessionRecord:
    user_id: str
    username: str
    last_activity: datetime
    expires_at: datetime


class SessionManager:
    """Generate, validate, refresh and revoke sessions with a sliding expiry."""

    def __init__(
        self,
        *,
        ttl: timedelta = SESSION_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._ttl = ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sessions: Dict[str, _SessionRecord] = {}
        # HTTP handlers run on a thread pool, so access is serialised.
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def create(self, user_id: str, username: str) -> str:
        self.purge_expired()
        token = secrets.token_urlsafe(32)
        now = self._clock()
        record = _SessionRecord(
            user_id=user_id,
            username=username,
            last_activity=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            self._sessions[token] = record
        return token

    def resolve(self, token: Optional[str], *, refresh: bool = False) -> Optional[SessionIdentity]:
        """Return the identity for ``token``; ``refresh`` slides the expiry forward."""

        if not token:
            return None
        now = self._clock()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._sessions.pop(token, None)
                return None
            if refresh:
                record.last_activity = now
                record.expires_at = now + self._ttl
            return SessionIdentity(
                session_id=token,
                user_id=record.user_id,
                username=record.username,
                last_activity=record.last_activity,
                expires_at=record.expires_at,
            )

    def destroy(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            self._sessions.pop(token, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [token for token, record in self._sessions.items() if record.expires_at <= now]
            for token in expired:
                del self._sessions[token]
        return len(expired)


__all__ = ["SESSION_COOKIE_NAME", "SESSION_TTL", "SessionIdentity", "SessionManager"]
