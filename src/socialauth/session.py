"""Browser session storage for the login round-trip.

Sessions are stored server-side with only a secure session ID sent to
clients. The login flow never touches a Session directly: it is handed a
SessionDataHandler scoped to one session and one provider, which is the
only state shared between the redirect request and the callback request.
"""

from __future__ import annotations

import asyncio
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

STATE_KEY = "oauth2state"
ACCESS_TOKEN_KEY = "access_token"

# Keys nullified when a login attempt fails.
LOGIN_ATTEMPT_KEYS = frozenset({ACCESS_TOKEN_KEY, STATE_KEY})

_MESSAGES_KEY = "messages"


@runtime_checkable
class SessionDataStore(Protocol):
    """Key/value store scoped to the current browser session."""

    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous one."""
        ...

    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when absent."""
        ...

    def clear(self, keys: set[str] | frozenset[str]) -> None:
        """Remove the given keys. Missing keys are ignored."""
        ...


@dataclass
class Session:
    """One browser session.

    Sessions are identified by a cryptographically secure session_id.
    """

    session_id: str
    data: dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    expires_at: float = 0.0

    def __post_init__(self):
        """Set default expiration if not provided."""
        if self.expires_at == 0.0:
            self.expires_at = self.created_at + 86400

    @property
    def is_expired(self) -> bool:
        """Check if session has expired."""
        return time.time() > self.expires_at

    @property
    def remaining_seconds(self) -> float:
        """Get remaining session lifetime in seconds."""
        return max(0.0, self.expires_at - time.time())


class SessionDataHandler:
    """SessionDataStore over one Session, namespaced by plugin id.

    Every key is stored as ``<prefix>_<key>`` so the Drupal and Instagram
    login attempts of one browser never overwrite each other.
    """

    def __init__(self, session: Session, prefix: str) -> None:
        self._session = session
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}_{key}"

    def set(self, key: str, value: Any) -> None:
        self._session.data[self._key(key)] = value

    def get(self, key: str) -> Any | None:
        return self._session.data.get(self._key(key))

    def clear(self, keys: set[str] | frozenset[str]) -> None:
        for key in keys:
            self._session.data.pop(self._key(key), None)


def add_message(session: Session, text: str, level: str = "error") -> None:
    """Queue a flash message for the next page the user sees."""
    session.data.setdefault(_MESSAGES_KEY, []).append({"type": level, "text": text})


def pop_messages(session: Session) -> list[dict[str, str]]:
    """Return and remove all queued flash messages."""
    return session.data.pop(_MESSAGES_KEY, [])


class SessionManager:
    """In-memory session storage with expiration cleanup.

    Thread-safe via asyncio locks for concurrent access.
    """

    def __init__(
        self,
        cleanup_interval: float = 300.0,
        session_duration: int = 86400,
    ):
        """Initialize session manager.

        Args:
            cleanup_interval: How often to run cleanup in seconds (default 5 min)
            session_duration: Default session duration in seconds (default 24 hours)
        """
        self._sessions: dict[str, Session] = {}
        self._cleanup_interval = cleanup_interval
        self._session_duration = session_duration
        self._cleanup_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def session_duration(self) -> int:
        return self._session_duration

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def create_session(self, duration: int | None = None) -> Session:
        """Create a new empty session with a secure random ID.

        Args:
            duration: Session duration in seconds (uses default if not specified)
        """
        session_id = secrets.token_urlsafe(32)
        duration = duration or self._session_duration
        now = time.time()

        session = Session(
            session_id=session_id,
            created_at=now,
            expires_at=now + duration,
        )

        async with self._lock:
            self._sessions[session_id] = session

        return session

    async def get_session(self, session_id: str) -> Session | None:
        """Retrieve a session by ID.

        Returns None if the session doesn't exist or has expired.
        Expired sessions are removed when accessed.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            if session.is_expired:
                del self._sessions[session_id]
                return None

            return session

    async def delete_session(self, session_id: str) -> bool:
        """Explicitly invalidate a session.

        Returns:
            True if session was deleted, False if not found
        """
        async with self._lock:
            if session_id in self._sessions:
                del self._sessions[session_id]
                return True
            return False

    async def get_session_count(self) -> int:
        """Get the current number of active sessions."""
        async with self._lock:
            return len(self._sessions)

    async def _cleanup_loop(self) -> None:
        """Background task to remove expired sessions."""
        while True:
            try:
                await asyncio.sleep(self._cleanup_interval)
                await self._cleanup_expired()
            except asyncio.CancelledError:
                break

    async def _cleanup_expired(self) -> int:
        """Remove all expired sessions.

        Returns:
            Number of sessions removed
        """
        now = time.time()
        removed = 0

        async with self._lock:
            expired_ids = [
                sid for sid, session in self._sessions.items()
                if session.expires_at < now
            ]
            for sid in expired_ids:
                del self._sessions[sid]
                removed += 1

        return removed
