"""Session state and storage backends."""

from credman_api.sessions.models import Session
from credman_api.sessions.store import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    SessionUpdateConflict,
    build_session_store,
)

__all__ = [
    "InMemorySessionStore",
    "RedisSessionStore",
    "Session",
    "SessionStore",
    "SessionUpdateConflict",
    "build_session_store",
]
