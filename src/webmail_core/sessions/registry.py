"""In-memory session tokens.

Sessions are soft state: they are never persisted and a restart logs every
user out. Expired entries are evicted when looked up and by a periodic sweep.
"""

from __future__ import annotations

import asyncio
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from webmail_core.config import Settings
from webmail_core.exceptions import InvalidInputError
from webmail_core.sessions.credentials import CredentialVerifier
from webmail_core.utils import Clock, utc_now

logger = structlog.get_logger()

_TOKEN_BYTES = 32


@dataclass(frozen=True)
class Session:
    principal: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class SessionRegistry:
    """Thread-safe token -> (principal, expiry) map."""

    def __init__(
        self,
        *,
        default_ttl: timedelta = timedelta(minutes=60),
        extended_ttl: timedelta = timedelta(hours=24),
        clock: Clock = utc_now,
    ) -> None:
        self.default_ttl = default_ttl
        self.extended_ttl = extended_ttl
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionRegistry:
        return cls(
            default_ttl=timedelta(minutes=settings.session_ttl_minutes),
            extended_ttl=timedelta(minutes=settings.session_extended_ttl_minutes),
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def issue(self, principal: str, ttl: timedelta | None = None) -> str:
        """Create a session and return its unguessable token."""

        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= timedelta(0):
            raise InvalidInputError("session ttl must be positive")

        token = secrets.token_urlsafe(_TOKEN_BYTES)
        session = Session(principal=principal, expires_at=self._clock() + ttl)
        with self._lock:
            self._sessions[token] = session
        logger.info("session_issued", principal=principal, expires_at=session.expires_at.isoformat())
        return token

    def validate(self, token: str | None) -> str | None:
        """Return the principal for a live token, or None.

        An expired token is removed as part of the lookup.
        """

        if not token:
            return None

        now = self._clock()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if session.is_expired(now):
                del self._sessions[token]
                logger.debug("session_expired", principal=session.principal)
                return None
            return session.principal

    def revoke(self, token: str | None) -> None:
        if not token:
            return
        with self._lock:
            session = self._sessions.pop(token, None)
        if session is not None:
            logger.info("session_revoked", principal=session.principal)

    def login(
        self,
        credentials: CredentialVerifier,
        username: str,
        password: str,
        *,
        remember: bool = False,
    ) -> str | None:
        """Verify credentials and issue a token on success.

        Args:
            credentials: Credential service doing the actual check.
            username: Account name.
            password: Clear-text password, passed through untouched.
            remember: Use the extended lifetime instead of the default one.

        Returns:
            A new token, or None when the credentials are rejected.
        """

        if not credentials.verify(username, password):
            logger.info("login_rejected", username=username)
            return None
        return self.issue(username, self.extended_ttl if remember else self.default_ttl)

    def sweep(self) -> int:
        """Drop every expired session. Returns how many were removed."""

        now = self._clock()
        with self._lock:
            expired = [token for token, s in self._sessions.items() if s.is_expired(now)]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.info("session_swept", removed=len(expired))
        return len(expired)

    async def run_sweeper(self, interval: float) -> None:
        """Sweep every ``interval`` seconds until cancelled."""

        if interval <= 0:
            raise InvalidInputError("sweep interval must be positive")
        while True:
            await asyncio.sleep(interval)
            self.sweep()

    def close(self) -> None:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        logger.info("session_registry_closed", dropped=count)
