"""Session registry: the id → channel mapping shared by the HTTP dispatcher and broadcasters."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from data_steward.exceptions import CapacityError, DuplicateSessionError
from data_steward.transport.channel import TransportChannel

logger = logging.getLogger(__name__)

# 16 random bytes, 128 bits of entropy
SESSION_ID_BYTES = 16

ChannelFactory = Callable[[str], TransportChannel]


def new_session_id() -> str:
    return secrets.token_hex(SESSION_ID_BYTES)


@dataclass
class Session:
    """A client-visible session and the channel that serves it."""

    id: str
    channel: TransportChannel
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionRegistry:
    """Owns every live session of one server instance.

    All mutation happens on the event loop thread, so no locking is needed;
    broadcasters iterate over the snapshot returned by ``sessions()``.

    Args:
        max_sessions: Optional upper bound on concurrently registered sessions.
                      None (the default) means unbounded.
    """

    def __init__(self, max_sessions: int | None = None) -> None:
        self.max_sessions = max_sessions
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create_session(self, channel_factory: ChannelFactory) -> Session:
        """Create, bind and register a new session under a freshly generated id."""
        if self.max_sessions is not None and len(self._sessions) >= self.max_sessions:
            raise CapacityError(self.max_sessions)

        session_id = new_session_id()
        session = Session(id=session_id, channel=channel_factory(session_id))
        self.register(session)
        logger.info("Created session %s", session_id)
        return session

    def register(self, session: Session) -> None:
        """Register a session, refusing a second channel under a live id."""
        if session.id in self._sessions:
            raise DuplicateSessionError(session.id)
        self._sessions[session.id] = session

    def lookup(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Session | None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Removed session %s", session_id)
        return session

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    async def close_all(self) -> None:
        """Close every channel and forget all sessions (server shutdown)."""
        sessions = self.sessions()
        self._sessions.clear()
        for session in sessions:
            await session.channel.close()
        if sessions:
            logger.info("Closed %d session(s)", len(sessions))
