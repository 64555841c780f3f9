"""Session endpoints: organization selection, inspection, logout.

All three resolve the caller through get_request_context, so their log lines
carry the acting user and organization like every other route. Only a
session-backed context counts here; proxy headers alone carry no token.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session as DbSession

from credman_api.auth.dependencies import get_request_context, get_session_store
from credman_api.auth.identity import RequestContext
from credman_api.config.env import get_session_cookie_name, is_session_cookie_secure
from credman_api.db.session import get_db
from credman_api.schemas import SelectOrganizationRequest, SessionResponse
from credman_api.services.sessions import SessionService
from credman_api.sessions.models import Session
from credman_api.sessions.store import SessionStore

router = APIRouter(prefix="/v1/session", tags=["session"])


def session_token_of(ctx: Optional[RequestContext]) -> Optional[str]:
    if ctx is None or not ctx.has_session:
        return None
    return ctx.session_token


def to_response(session: Session) -> SessionResponse:
    return SessionResponse(
        user_id=session.user_id,
        email=session.email,
        selected_org_id=session.selected_org_id,
        selected_org_name=session.selected_org_name,
        associated_org_ids=session.associated_org_ids,
        org_selection_required=session.org_selection_required,
    )


@router.post("/org", response_model=SessionResponse)
async def select_organization(
    body: SelectOrganizationRequest,
    ctx: Optional[RequestContext] = Depends(get_request_context),
    store: SessionStore = Depends(get_session_store),
    db: DbSession = Depends(get_db),
) -> SessionResponse:
    """Select the organization this session acts for."""
    session = SessionService(db, store).select_organization(session_token_of(ctx), body.organization_id)
    return to_response(session)


@router.get(
    "",
    response_model=Optional[SessionResponse],
    responses={204: {"description": "No active session"}},
)
async def get_session(
    ctx: Optional[RequestContext] = Depends(get_request_context),
    store: SessionStore = Depends(get_session_store),
    db: DbSession = Depends(get_db),
):
    session = SessionService(db, store).get_session(session_token_of(ctx))
    if session is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return to_response(session)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    ctx: Optional[RequestContext] = Depends(get_request_context),
    store: SessionStore = Depends(get_session_store),
    db: DbSession = Depends(get_db),
) -> Response:
    SessionService(db, store).logout(session_token_of(ctx))
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(
        key=get_session_cookie_name(),
        httponly=True,
        secure=is_session_cookie_secure(),
        samesite="lax",
    )
    return response
