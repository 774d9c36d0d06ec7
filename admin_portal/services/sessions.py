"""In-memory registry of admin sessions issued at login."""

import logging
import uuid
from datetime import UTC, datetime, timedelta

from admin_portal.config import SESSION_TTL_HOURS
from admin_portal.models.session import AdminSession

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, ttl: timedelta = timedelta(hours=SESSION_TTL_HOURS)) -> None:
        self.ttl = ttl
        self._sessions: dict[str, AdminSession] = {}

    def create(self, user_id: int | str) -> AdminSession:
        self.purge()
        session = AdminSession.start(uuid.uuid4().hex, user_id, self.ttl)
        self._sessions[session.token] = session
        logger.info("Admin session opened for user %s", user_id)
        return session

    def get(self, token: str, now: datetime | None = None) -> AdminSession | None:
        """Live session for ``token``; expired sessions are dropped on lookup."""
        session = self._sessions.get(token)
        if session is None:
            return None
        if session.is_expired(now):
            self._sessions.pop(token, None)
            logger.info("Admin session for user %s expired", session.user_id)
            return None
        return session

    def revoke(self, token: str) -> bool:
        session = self._sessions.pop(token, None)
        if session is not None:
            logger.info("Admin session for user %s closed", session.user_id)
        return session is not None

    def purge(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        expired = [t for t, s in self._sessions.items() if s.is_expired(now)]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info("Purged %d expired admin sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
