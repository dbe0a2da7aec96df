"""
Session registry: maps session ids to live ConversationSession objects.

The store behind the registry is pluggable. The in-memory store is guarded by
a lock so it can be shared by handlers running on different threads.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Iterator, Optional

from ..infrastructure.errors import SessionNotFoundError
from .session import ConversationSession


class SessionStore(ABC):
    """Storage backend for sessions."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[ConversationSession]:
        ...

    @abstractmethod
    def put_if_absent(self, session: ConversationSession) -> bool:
        """Store the session unless its id is taken; True if stored."""

    @abstractmethod
    def ids(self) -> list[str]:
        ...


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[ConversationSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def put_if_absent(self, session: ConversationSession) -> bool:
        with self._lock:
            if session.session_id in self._sessions:
                return False
            self._sessions[session.session_id] = session
            return True

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)


class SessionRegistry:
    """
    Lookup of sessions by id.

    Sessions stay registered in every state. Nothing expires on its own and
    there is no way to remove an entry.
    """

    def __init__(self, store: Optional[SessionStore] = None):
        self.store = store or InMemorySessionStore()

    def add(self, session: ConversationSession) -> ConversationSession:
        if not self.store.put_if_absent(session):
            raise ValueError(f"Session already registered: {session.session_id}")
        return session

    def get(self, session_id: str) -> ConversationSession:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def find(self, session_id: str) -> Optional[ConversationSession]:
        return self.store.get(session_id)

    def abandon(self, session_id: str) -> ConversationSession:
        session = self.get(session_id)
        session.abandon()
        return session

    def session_ids(self) -> list[str]:
        return self.store.ids()

    def __contains__(self, session_id: object) -> bool:
        return isinstance(session_id, str) and self.store.get(session_id) is not None

    def __len__(self) -> int:
        return len(self.store.ids())

    def __iter__(self) -> Iterator[ConversationSession]:
        for session_id in self.store.ids():
            session = self.store.get(session_id)
            if session is not None:
                yield session
