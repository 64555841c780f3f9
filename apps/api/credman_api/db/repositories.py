"""SQL repositories for organizations, users and credentials.

Repositories add and flush; the calling service owns the transaction and
commits (or rolls back) once per operation.
"""

import uuid
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from credman_api.db.models import Credential, Organization, User, UserOrganization


class OrganizationRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_id(self, organization_id: str) -> Optional[Organization]:
        return self._session.query(Organization).filter(Organization.id == organization_id).first()

    def find_all(self) -> list[Organization]:
        return self._session.query(Organization).order_by(Organization.name, Organization.id).all()

    def find_all_by_id(self, organization_ids: Iterable[str]) -> list[Organization]:
        """Organizations for the given ids, in the order the ids were given.

        Unknown ids are simply absent from the result.
        """
        ids = list(dict.fromkeys(organization_ids))
        if not ids:
            return []
        rows = self._session.query(Organization).filter(Organization.id.in_(ids)).all()
        by_id = {row.id: row for row in rows}
        return [by_id[org_id] for org_id in ids if org_id in by_id]


class UserRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self._session.query(User).filter(User.id == user_id).first()

    def find_by_subject_id(self, subject_id: str) -> Optional[User]:
        return self._session.query(User).filter(User.subject_id == subject_id).first()

    def find_by_email(self, email: str) -> Optional[User]:
        return self._session.query(User).filter(User.email == email).first()

    def find_all(self) -> list[User]:
        return self._session.query(User).order_by(User.created_at, User.id).all()

    def create(
        self,
        subject_id: str,
        email: str,
        organization_ids: Iterable[str],
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """Insert a user together with its memberships (not committed)."""
        user = User(
            id=str(uuid.uuid4()),
            subject_id=subject_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
        )
        self._session.add(user)
        self._session.flush()
        for org_id in dict.fromkeys(organization_ids):
            self._session.add(UserOrganization(user_id=user.id, organization_id=org_id))
        self._session.flush()
        return user

    def find_members_of_org(self, organization_id: str) -> list[User]:
        return (
            self._session.query(User)
            .join(UserOrganization, UserOrganization.user_id == User.id)
            .filter(UserOrganization.organization_id == organization_id)
            .order_by(User.created_at, User.id)
            .all()
        )

    def organization_ids_for_user(self, user_id: str) -> list[str]:
        rows = (
            self._session.query(UserOrganization.organization_id)
            .filter(UserOrganization.user_id == user_id)
            .order_by(UserOrganization.created_at, UserOrganization.organization_id)
            .all()
        )
        return [row[0] for row in rows]

    def is_member_of_org(self, user_id: str, organization_id: str) -> bool:
        membership = (
            self._session.query(UserOrganization)
            .filter(
                UserOrganization.user_id == user_id,
                UserOrganization.organization_id == organization_id,
            )
            .first()
        )
        return membership is not None

    def count_memberships(self, user_id: str) -> int:
        return (
            self._session.query(UserOrganization)
            .filter(UserOrganization.user_id == user_id)
            .count()
        )


class CredentialRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_id(self, credential_id: str) -> Optional[Credential]:
        return self._session.query(Credential).filter(Credential.id == credential_id).first()

    def create(
        self,
        client_id: str,
        encrypted_secret: str,
        name: str,
        organization_id: str,
        created_by_user_id: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> Credential:
        credential = Credential(
            id=str(uuid.uuid4()),
            client_id=client_id,
            client_secret=encrypted_secret,
            name=name,
            organization_id=organization_id,
            created_by_user_id=created_by_user_id,
            created_at=created_at,
            expires_at=expires_at,
        )
        self._session.add(credential)
        self._session.flush()
        return credential

    def update_secret(self, credential: Credential, encrypted_secret: str) -> Credential:
        credential.client_secret = encrypted_secret
        self._session.flush()
        return credential

    def delete(self, credential: Credential) -> None:
        self._session.delete(credential)
        self._session.flush()
