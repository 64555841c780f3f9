"""Session store: create / get / update / invalidate, keyed by opaque token.

Two backends:
- RedisSessionStore: shared across worker processes (default, required in prod)
- InMemorySessionStore: single-process development and tests

Both expire sessions after an idle timeout; every successful ``get`` or
``update`` pushes the expiry forward. An expired token is indistinguishable
from one that never existed.
"""

import logging
import secrets
import threading
import time
from typing import Callable, Mapping, Optional, Sequence

import redis
from redis.exceptions import WatchError

from credman_api.config.env import get_session_backend, get_session_idle_timeout_seconds
from credman_api.sessions.models import Session

logger = logging.getLogger(__name__)

SessionMutator = Callable[[Session], Session]

TOKEN_BYTES = 32


class SessionUpdateConflict(RuntimeError):
    """Optimistic update lost the race too many times in a row."""


def generate_session_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def build_session(
    token: str,
    user_id: str,
    subject_id: str,
    email: str,
    associated_org_ids: Sequence[str],
    org_names: Mapping[str, str],
) -> Session:
    """Initial session state for a fresh login.

    Exactly one associated organization is selected automatically; zero or
    several leave the selection empty.
    """
    org_ids = list(dict.fromkeys(associated_org_ids))
    selected_org_id = org_ids[0] if len(org_ids) == 1 else None
    return Session(
        token=token,
        user_id=user_id,
        subject_id=subject_id,
        email=email,
        selected_org_id=selected_org_id,
        selected_org_name=org_names.get(selected_org_id) if selected_org_id else None,
        associated_org_ids=org_ids,
    )


class SessionStore:
    """Interface shared by all session backends."""

    def __init__(self, idle_timeout_seconds: Optional[int] = None):
        self.idle_timeout_seconds = idle_timeout_seconds or get_session_idle_timeout_seconds()

    def create(
        self,
        user_id: str,
        subject_id: str,
        email: str,
        associated_org_ids: Sequence[str],
        org_names: Optional[Mapping[str, str]] = None,
    ) -> Session:
        session = build_session(
            generate_session_token(),
            user_id,
            subject_id,
            email,
            associated_org_ids,
            org_names or {},
        )
        self._save(session)
        logger.info(
            "Session created",
            extra={
                "event": "session.created",
                "user_id": user_id,
                "org_count": len(session.associated_org_ids),
                "org_selection_required": session.org_selection_required,
            },
        )
        return session

    def get(self, token: Optional[str]) -> Optional[Session]:
        raise NotImplementedError

    def update(self, token: str, mutator: SessionMutator) -> Optional[Session]:
        """Apply ``mutator`` to the current state of ``token`` atomically.

        The mutator receives the latest stored state and returns the new
        state. Returns the stored result, or None when the session is absent
        or expired (the mutator is not called in that case).
        """
        raise NotImplementedError

    def invalidate(self, token: Optional[str]) -> None:
        raise NotImplementedError

    def ping(self) -> bool:
        return True

    def _save(self, session: Session) -> None:
        raise NotImplementedError


class RedisSessionStore(SessionStore):
    """Redis-backed sessions.

    Key: credman:session:{token} -> JSON, with EX = idle timeout.
    update() runs WATCH / MULTI / EXEC; when another writer touches the key
    between read and write the transaction is replayed against the fresh
    state, so concurrent updates compose instead of dropping each other.
    """

    KEY_PREFIX = "credman:session:"
    MAX_UPDATE_ATTEMPTS = 5

    def __init__(self, client: redis.Redis, idle_timeout_seconds: Optional[int] = None):
        super().__init__(idle_timeout_seconds)
        self.redis = client

    def _key(self, token: str) -> str:
        return f"{self.KEY_PREFIX}{token}"

    def _save(self, session: Session) -> None:
        self.redis.set(self._key(session.token), session.model_dump_json(), ex=self.idle_timeout_seconds)

    def get(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        raw = self.redis.getex(self._key(token), ex=self.idle_timeout_seconds)
        if raw is None:
            return None
        return Session.model_validate_json(raw)

    def update(self, token: str, mutator: SessionMutator) -> Optional[Session]:
        key = self._key(token)
        with self.redis.pipeline() as pipe:
            for _ in range(self.MAX_UPDATE_ATTEMPTS):
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    if raw is None:
                        pipe.unwatch()
                        return None
                    updated = mutator(Session.model_validate_json(raw))
                    pipe.multi()
                    pipe.set(key, updated.model_dump_json(), ex=self.idle_timeout_seconds)
                    pipe.execute()
                    return updated
                except WatchError:
                    logger.debug("Session update raced, replaying", extra={"event": "session.update_retry"})
        raise SessionUpdateConflict(f"Session update failed after {self.MAX_UPDATE_ATTEMPTS} attempts")

    def invalidate(self, token: Optional[str]) -> None:
        if not token:
            return
        if self.redis.delete(self._key(token)):
            logger.info("Session invalidated", extra={"event": "session.invalidated"})

    def ping(self) -> bool:
        return bool(self.redis.ping())


class InMemorySessionStore(SessionStore):
    """Process-local sessions guarded by a lock.

    Only valid with a single worker process; config refuses it in production.
    """

    def __init__(
        self,
        idle_timeout_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(idle_timeout_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, tuple[str, float]] = {}

    def _save(self, session: Session) -> None:
        with self._lock:
            self._put(session)

    def _put(self, session: Session) -> None:
        expires_at = self._clock() + self.idle_timeout_seconds
        self._sessions[session.token] = (session.model_dump_json(), expires_at)

    def _live(self, token: str) -> Optional[Session]:
        entry = self._sessions.get(token)
        if entry is None:
            return None
        raw, expires_at = entry
        if self._clock() >= expires_at:
            del self._sessions[token]
            return None
        return Session.model_validate_json(raw)

    def get(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        with self._lock:
            session = self._live(token)
            if session is not None:
                self._put(session)
            return session

    def update(self, token: str, mutator: SessionMutator) -> Optional[Session]:
        with self._lock:
            current = self._live(token)
            if current is None:
                return None
            updated = mutator(current)
            self._put(updated)
            return updated

    def invalidate(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            removed = self._sessions.pop(token, None)
        if removed is not None:
            logger.info("Session invalidated", extra={"event": "session.invalidated"})

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def build_session_store() -> SessionStore:
    """Session store for the configured CREDMAN_SESSION_BACKEND."""
    backend = get_session_backend()
    if backend == "memory":
        logger.warning(
            "Using in-memory session store (single process only)",
            extra={"event": "session.backend_memory"},
        )
        return InMemorySessionStore()

    from credman_api.db.redis_client import RedisClient

    return RedisSessionStore(RedisClient.get_client())
