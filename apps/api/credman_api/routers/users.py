"""User login and directory endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlalchemy.orm import Session as DbSession

from credman_api.auth.dependencies import (
    get_gated_context,
    get_request_context,
    get_session_store,
    get_session_token,
)
from credman_api.auth.identity import RequestContext, resolve_request_context
from credman_api.config.env import (
    get_session_cookie_name,
    is_session_cookie_secure,
)
from credman_api.db.session import get_db
from credman_api.errors import login_required
from credman_api.schemas import LoginRequest, LoginResponse, OrganizationSummary, UserResponse
from credman_api.services.login import LoginService
from credman_api.services.users import DirectoryService
from credman_api.sessions.store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/users", tags=["users"])


def set_session_cookie(response: Response, token: str) -> None:
    """Browser-session cookie; idle expiry is enforced by the session store only."""
    response.set_cookie(
        key=get_session_cookie_name(),
        value=token,
        httponly=True,
        secure=is_session_cookie_secure(),
        samesite="lax",
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    response: Response,
    body: Optional[LoginRequest] = Body(None),
    ctx: Optional[RequestContext] = Depends(get_request_context),
    store: SessionStore = Depends(get_session_store),
    db: DbSession = Depends(get_db),
) -> LoginResponse:
    """Log in with the identity asserted by the trusted proxy.

    Fresh proxy headers take precedence over an existing session; without
    either the call is rejected. A session created here replaces the one
    carried by the request cookie.
    """
    identity = resolve_request_context(store, None, request.headers) or ctx
    if identity is None:
        raise login_required("Login requires an authenticated identity from the upstream proxy.")

    body = body or LoginRequest()
    outcome = LoginService(db, store).login(
        subject_id=identity.subject_id,
        email=identity.email,
        requested_org_ids=body.associate_with_org_ids,
        first_name=body.first_name,
        last_name=body.last_name,
        previous_session_token=get_session_token(request),
    )

    if outcome.session is not None:
        set_session_cookie(response, outcome.session.token)

    return LoginResponse(
        email=outcome.email,
        is_first_login=outcome.is_first_login,
        requires_org_selection=outcome.requires_org_selection,
        message=outcome.message,
        available_orgs=[OrganizationSummary.model_validate(org) for org in outcome.available_orgs],
        associated_orgs=[OrganizationSummary.model_validate(org) for org in outcome.associated_orgs],
        session_id=outcome.session.token if outcome.session else None,
        association_ignored=outcome.association_ignored,
    )


@router.get("", response_model=list[UserResponse])
async def list_users(
    ctx: RequestContext = Depends(get_gated_context),
    db: DbSession = Depends(get_db),
) -> list[UserResponse]:
    """Users of the selected organization."""
    return [UserResponse.model_validate(user) for user in DirectoryService(db).list_users(ctx)]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    ctx: RequestContext = Depends(get_gated_context),
    db: DbSession = Depends(get_db),
) -> UserResponse:
    return UserResponse.model_validate(DirectoryService(db).get_user(ctx, user_id))
