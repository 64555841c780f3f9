"""FastAPI dependencies wiring sessions, identity and the membership gate.

Components live on ``app.state`` (session_store, secret_codec) and are built
from configuration on first use; tests replace them by assigning to
``app.state`` before issuing requests.
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session as DbSession

from credman_api.auth.identity import RequestContext, bind_log_context, resolve_request_context
from credman_api.auth.org_gate import OrganizationGate
from credman_api.config.env import get_session_cookie_name
from credman_api.context import clear_identity_vars
from credman_api.db.repositories import UserRepository
from credman_api.db.session import get_db
from credman_api.errors import login_required
from credman_api.security.secret_codec import SecretCodec
from credman_api.sessions.store import SessionStore, build_session_store


def get_session_store(request: Request) -> SessionStore:
    store = getattr(request.app.state, "session_store", None)
    if store is None:
        store = build_session_store()
        request.app.state.session_store = store
    return store


def get_secret_codec(request: Request) -> SecretCodec:
    codec = getattr(request.app.state, "secret_codec", None)
    if codec is None:
        codec = SecretCodec()
        request.app.state.secret_codec = codec
    return codec


def get_session_token(request: Request) -> Optional[str]:
    return request.cookies.get(get_session_cookie_name()) or None


async def get_request_context(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> AsyncGenerator[Optional[RequestContext], None]:
    """Resolve the identity for this request; torn down on every exit path."""
    ctx = resolve_request_context(store, get_session_token(request), request.headers)
    bind_log_context(ctx)
    try:
        yield ctx
    finally:
        clear_identity_vars()


async def require_session_context(
    ctx: Optional[RequestContext] = Depends(get_request_context),
) -> RequestContext:
    """Require a live session. Header-only identity is accepted on login only."""
    if ctx is None or not ctx.has_session:
        raise login_required()
    return ctx


async def get_gated_context(
    ctx: Optional[RequestContext] = Depends(get_request_context),
    db: DbSession = Depends(get_db),
) -> RequestContext:
    """Session context that passed the organization membership gate."""
    if ctx is not None and not ctx.has_session:
        ctx = None
    return OrganizationGate(UserRepository(db)).check(ctx)
