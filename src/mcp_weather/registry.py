"""Session registry: the concurrent map from session id to live protocol instance.

Each transport kind owns one registry, so the request/response and push-stream
transports have independent session id spaces. Session ids are minted here from
``uuid4``, which draws its 122 random bits from the operating system's CSPRNG,
so ids cannot be guessed from previously issued ones.

All methods are synchronous and guarded by a lock. Being synchronous lets a
closing session unregister itself from a plain callback, and the lock keeps
lookups from ever observing an entry that is still being constructed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Generic, Protocol, TypeVar
from uuid import uuid4

logger = logging.getLogger(__name__)


class Closeable(Protocol):
    def close(self) -> None: ...


SessionT = TypeVar("SessionT", bound=Closeable)


class SessionRegistry(Generic[SessionT]):
    """Maps opaque session ids to live sessions.

    Usage:
        registry: SessionRegistry[ServerSession] = SessionRegistry()
        session = registry.create(lambda session_id: ServerSession(session_id, ...))
        assert registry.get(session.session_id) is session
        registry.remove(session.session_id)
        registry.remove(session.session_id)  # no-op
    """

    def __init__(self, name: str = "sessions") -> None:
        self.name = name
        self._lock = threading.Lock()
        self._sessions: dict[str, SessionT] = {}

    @staticmethod
    def new_session_id() -> str:
        return uuid4().hex

    def create(self, factory: Callable[[str], SessionT]) -> SessionT:
        """Mint a fresh session id, build the session with it and register it.

        The factory runs under the registry lock and must not call back into
        the registry.
        """
        with self._lock:
            session_id = self.new_session_id()
            while session_id in self._sessions:
                session_id = self.new_session_id()
            session = factory(session_id)
            self._sessions[session_id] = session

        logger.info("Registered session %s in %s", session_id, self.name)
        return session

    def get(self, session_id: str | None) -> SessionT | None:
        if session_id is None:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> SessionT | None:
        """Unregister a session. Removing an unknown id is a silent no-op."""
        with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is not None:
            logger.info("Removed session %s from %s", session_id, self.name)
        return session

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def close_all(self) -> None:
        """Close every registered session; used when the transport shuts down."""
        with self._lock:
            sessions = list(self._sessions.values())

        # Sessions remove themselves on close, so close outside the lock
        for session in sessions:
            session.close()

        with self._lock:
            self._sessions.clear()

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
