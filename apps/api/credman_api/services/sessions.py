"""Session operations exposed to clients: select org, view, logout."""

import logging
from typing import Optional

from sqlalchemy.orm import Session as DbSession

from credman_api.db.repositories import OrganizationRepository, UserRepository
from credman_api.errors import AuthorizationFailed, AuthorizationReason, ResourceNotFound, login_required
from credman_api.sessions.models import Session
from credman_api.sessions.store import SessionStore

logger = logging.getLogger(__name__)


def _not_a_member() -> AuthorizationFailed:
    return AuthorizationFailed(
        AuthorizationReason.NOT_A_MEMBER,
        "You are not a member of the requested organization.",
    )


class SessionService:
    def __init__(self, db: DbSession, session_store: SessionStore):
        self.session_store = session_store
        self.users = UserRepository(db)
        self.organizations = OrganizationRepository(db)

    def select_organization(self, session_token: Optional[str], organization_id: str) -> Session:
        """Select the organization the session acts for.

        The org must exist, be in the session's snapshot, and still be a live
        membership. On rejection the previous selection is left untouched.

        Raises:
            AuthorizationFailed: No session (LOGIN_REQUIRED) or not a member
            ResourceNotFound: Unknown organization id
        """
        session = self.session_store.get(session_token)
        if session is None:
            raise login_required()

        org = self.organizations.find_by_id(organization_id)
        if org is None:
            raise ResourceNotFound("organization", organization_id)

        if organization_id not in session.associated_org_ids or not self.users.is_member_of_org(
            session.user_id, organization_id
        ):
            logger.warning(
                "Organization selection rejected",
                extra={"event": "session.org_selection_denied", "requested_org_id": organization_id},
            )
            raise _not_a_member()

        def select(current: Session) -> Session:
            if organization_id not in current.associated_org_ids:
                raise _not_a_member()
            return current.with_selection(org.id, org.name)

        updated = self.session_store.update(session.token, select)
        if updated is None:
            raise login_required()

        logger.info(
            "Organization selected",
            extra={"event": "session.org_selected", "selected_org_id": org.id},
        )
        return updated

    def get_session(self, session_token: Optional[str]) -> Optional[Session]:
        return self.session_store.get(session_token)

    def logout(self, session_token: Optional[str]) -> None:
        self.session_store.invalidate(session_token)
