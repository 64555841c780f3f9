"""Login state machine.

Each login call is classified as new/returning and single/multi-org:

    new user, no org ids        -> first login, selection required, all orgs
                                   listed as candidates, nothing created
    new user, org ids           -> ids validated (all or nothing), user and
                                   memberships created, session opened
    returning user, one org     -> session opened with that org selected
    returning user, many orgs   -> session opened, selection required, the
                                   user's own orgs listed as candidates
    returning user, no orgs     -> session opened, selection required, no
                                   candidates (credential operations blocked)

Organization association happens once, at first login. Org ids sent by a
returning user are ignored and reported back via ``association_ignored``.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from credman_api.db.models import Organization, User
from credman_api.db.repositories import OrganizationRepository, UserRepository
from credman_api.errors import ValidationFailed
from credman_api.sessions.models import Session
from credman_api.sessions.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class LoginOutcome:
    email: str
    is_first_login: bool
    requires_org_selection: bool
    message: str
    available_orgs: list[Organization] = field(default_factory=list)
    associated_orgs: list[Organization] = field(default_factory=list)
    session: Optional[Session] = None
    association_ignored: bool = False


class LoginService:
    def __init__(self, db: DbSession, session_store: SessionStore):
        self.db = db
        self.session_store = session_store
        self.users = UserRepository(db)
        self.organizations = OrganizationRepository(db)

    def login(
        self,
        subject_id: str,
        email: str,
        requested_org_ids: Optional[Sequence[str]] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        previous_session_token: Optional[str] = None,
    ) -> LoginOutcome:
        """Run one login transition.

        Args:
            subject_id: Upstream-verified subject identifier
            email: Upstream-verified email
            requested_org_ids: Organizations to associate (first login only)
            first_name: Stored on first login
            last_name: Stored on first login
            previous_session_token: Session being replaced, invalidated once
                a new session exists

        Raises:
            ValidationFailed: Missing identity, unknown org ids, or email
                already registered to another subject
        """
        subject_id = (subject_id or "").strip()
        email = (email or "").strip()
        field_errors = {}
        if not subject_id:
            field_errors["subject_id"] = "Subject identifier is required"
        if not email:
            field_errors["email"] = "Email is required"
        if field_errors:
            raise ValidationFailed("Identity information is incomplete", field_errors=field_errors)

        user = self.users.find_by_subject_id(subject_id)
        if user is None:
            outcome = self._first_login(subject_id, email, requested_org_ids or [], first_name, last_name)
        else:
            outcome = self._returning_login(user, requested_org_ids or [])

        if outcome.session is not None and previous_session_token:
            if previous_session_token != outcome.session.token:
                self.session_store.invalidate(previous_session_token)

        return outcome

    def _first_login(
        self,
        subject_id: str,
        email: str,
        requested_org_ids: Sequence[str],
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> LoginOutcome:
        org_ids = [org_id.strip() for org_id in requested_org_ids if org_id and org_id.strip()]
        org_ids = list(dict.fromkeys(org_ids))

        if not org_ids:
            logger.info(
                "First login, organization association required",
                extra={"event": "login.first_login", "outcome": "association_required"},
            )
            return LoginOutcome(
                email=email,
                is_first_login=True,
                requires_org_selection=True,
                message="Welcome! Select one or more organizations to associate with your account.",
                available_orgs=self.organizations.find_all(),
            )

        orgs = self.organizations.find_all_by_id(org_ids)
        found = {org.id for org in orgs}
        missing = [org_id for org_id in org_ids if org_id not in found]
        if missing:
            raise ValidationFailed(
                "One or more organizations do not exist",
                field_errors={"associate_with_org_ids": f"Unknown organization id(s): {', '.join(missing)}"},
                code="UNKNOWN_ORGANIZATION",
            )

        if self.users.find_by_email(email) is not None:
            raise self._email_taken()

        try:
            user = self.users.create(subject_id, email, org_ids, first_name=first_name, last_name=last_name)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise self._email_taken() from None

        session = self.session_store.create(
            user.id,
            user.subject_id,
            user.email,
            org_ids,
            {org.id: org.name for org in orgs},
        )

        if len(orgs) == 1:
            message = f"Welcome! Your account is associated with {orgs[0].name}."
        else:
            message = "Welcome! Select the organization to work with for this session."

        logger.info(
            "First login, user created",
            extra={
                "event": "login.first_login",
                "outcome": "user_created",
                "user_id": user.id,
                "org_count": len(orgs),
            },
        )
        return LoginOutcome(
            email=user.email,
            is_first_login=True,
            requires_org_selection=session.org_selection_required,
            message=message,
            associated_orgs=orgs,
            available_orgs=orgs if session.org_selection_required else [],
            session=session,
        )

    def _returning_login(self, user: User, requested_org_ids: Sequence[str]) -> LoginOutcome:
        association_ignored = bool([org_id for org_id in requested_org_ids if org_id])
        if association_ignored:
            logger.warning(
                "Organization association ignored for returning user",
                extra={"event": "login.association_ignored", "user_id": user.id},
            )

        orgs = self.organizations.find_all_by_id(self.users.organization_ids_for_user(user.id))
        session = self.session_store.create(
            user.id,
            user.subject_id,
            user.email,
            [org.id for org in orgs],
            {org.id: org.name for org in orgs},
        )

        if len(orgs) == 1:
            message = f"Welcome back! You are logged in to {orgs[0].name}."
        elif orgs:
            message = "Welcome back! Select the organization to work with for this session."
        else:
            message = "Welcome back! Your account is not associated with any organization."

        logger.info(
            "Returning user logged in",
            extra={
                "event": "login.returning",
                "user_id": user.id,
                "org_count": len(orgs),
                "org_selection_required": session.org_selection_required,
            },
        )
        return LoginOutcome(
            email=user.email,
            is_first_login=False,
            requires_org_selection=session.org_selection_required,
            message=message,
            associated_orgs=orgs,
            available_orgs=orgs if session.org_selection_required else [],
            session=session,
            association_ignored=association_ignored,
        )

    @staticmethod
    def _email_taken() -> ValidationFailed:
        return ValidationFailed(
            "Email is already registered to another account",
            field_errors={"email": "Email is already registered"},
            code="EMAIL_ALREADY_REGISTERED",
        )
