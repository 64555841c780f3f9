"""Credential lifecycle: create, get, reset secret, delete.

Every operation runs on a gated RequestContext with a selected organization.
Lookups go through ``_load_owned`` which applies, in order:

1. credential exists                          else CREDENTIAL_NOT_FOUND
2. credential belongs to the selected org     else CREDENTIAL_NOT_FOUND
3. acting user exists                         else USER_NOT_FOUND
4. acting user created the credential         else NOT_PERMITTED

Step 2 answers not-found so a credential never shows through to another
tenant's context. Step 4 is a distinct authorization error: the caller is
inside the right tenant and only lacks ownership.

The plaintext secret is returned unmasked only by create and reset; get
returns it masked. Plaintext is never persisted or logged.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session as DbSession

from credman_api.auth.identity import RequestContext
from credman_api.db.models import Credential
from credman_api.db.repositories import CredentialRepository, OrganizationRepository, UserRepository
from credman_api.errors import (
    AuthorizationFailed,
    AuthorizationReason,
    ResourceNotFound,
    ValidationFailed,
    org_selection_required,
)
from credman_api.security.credential_generator import generate_client_id, generate_secret
from credman_api.security.secret_codec import SecretCodec

logger = logging.getLogger(__name__)

MIN_VALIDITY_DAYS = 1
MAX_VALIDITY_DAYS = 90
MAX_NAME_LENGTH = 255


@dataclass
class CredentialView:
    id: str
    client_id: str
    client_secret: str
    name: str
    organization_id: str
    created_at: datetime
    expires_at: datetime

    @classmethod
    def of(cls, credential: Credential, client_secret: str) -> "CredentialView":
        return cls(
            id=credential.id,
            client_id=credential.client_id,
            client_secret=client_secret,
            name=credential.name,
            organization_id=credential.organization_id,
            created_at=credential.created_at,
            expires_at=credential.expires_at,
        )


def validate_credential_request(name: str, validity_days: int) -> str:
    """Normalize the name and check validity bounds; returns the stripped name."""
    field_errors = {}
    stripped = (name or "").strip()
    if not stripped:
        field_errors["name"] = "Name must not be blank"
    elif len(stripped) > MAX_NAME_LENGTH:
        field_errors["name"] = f"Name must be at most {MAX_NAME_LENGTH} characters"
    if (
        isinstance(validity_days, bool)
        or not isinstance(validity_days, int)
        or not MIN_VALIDITY_DAYS <= validity_days <= MAX_VALIDITY_DAYS
    ):
        field_errors["validity_in_days"] = (
            f"Validity must be between {MIN_VALIDITY_DAYS} and {MAX_VALIDITY_DAYS} days"
        )
    if field_errors:
        raise ValidationFailed("Invalid credential request", field_errors=field_errors)
    return stripped


class CredentialService:
    def __init__(self, db: DbSession, codec: SecretCodec):
        self.db = db
        self.codec = codec
        self.credentials = CredentialRepository(db)
        self.users = UserRepository(db)
        self.organizations = OrganizationRepository(db)

    @staticmethod
    def _require_org(ctx: RequestContext) -> str:
        if ctx.selected_org_id is None:
            raise org_selection_required()
        return ctx.selected_org_id

    def create(self, ctx: RequestContext, name: str, validity_days: int) -> CredentialView:
        """Issue a new credential for the selected org; the secret is returned unmasked once."""
        name = validate_credential_request(name, validity_days)
        org_id = self._require_org(ctx)

        user = self.users.find_by_id(ctx.user_id)
        if user is None:
            raise ResourceNotFound("user", ctx.user_id)
        org = self.organizations.find_by_id(org_id)
        if org is None:
            raise ResourceNotFound("organization", org_id)

        plaintext = generate_secret()
        created_at = datetime.now(timezone.utc)
        credential = self.credentials.create(
            client_id=generate_client_id(),
            encrypted_secret=self.codec.encrypt(plaintext),
            name=name,
            organization_id=org.id,
            created_by_user_id=user.id,
            created_at=created_at,
            expires_at=created_at + timedelta(days=validity_days),
        )
        self.db.commit()

        logger.info(
            "Credential created",
            extra={
                "event": "credential.created",
                "credential_id": credential.id,
                "validity_days": validity_days,
            },
        )
        return CredentialView.of(credential, plaintext)

    def get(self, ctx: RequestContext, credential_id: str) -> CredentialView:
        credential = self._load_owned(ctx, credential_id, "view")
        return CredentialView.of(credential, self.codec.mask(self.codec.decrypt(credential.client_secret)))

    def reset_secret(self, ctx: RequestContext, credential_id: str) -> CredentialView:
        """Replace the secret in place; id, name and expiry are unchanged."""
        credential = self._load_owned(ctx, credential_id, "reset")
        plaintext = generate_secret()
        self.credentials.update_secret(credential, self.codec.encrypt(plaintext))
        self.db.commit()

        logger.info(
            "Credential secret reset",
            extra={"event": "credential.secret_reset", "credential_id": credential.id},
        )
        return CredentialView.of(credential, plaintext)

    def delete(self, ctx: RequestContext, credential_id: str) -> None:
        credential = self._load_owned(ctx, credential_id, "delete")
        self.credentials.delete(credential)
        self.db.commit()

        logger.info(
            "Credential deleted",
            extra={"event": "credential.deleted", "credential_id": credential_id},
        )

    def _load_owned(self, ctx: RequestContext, credential_id: str, action: str) -> Credential:
        org_id = self._require_org(ctx)

        credential = self.credentials.find_by_id(credential_id)
        if credential is None or credential.organization_id != org_id:
            raise ResourceNotFound("credential", credential_id)

        user = self.users.find_by_id(ctx.user_id)
        if user is None:
            raise ResourceNotFound("user", ctx.user_id)

        if credential.created_by_user_id != user.id:
            logger.warning(
                "Credential ownership check failed",
                extra={
                    "event": "credential.ownership_denied",
                    "credential_id": credential.id,
                    "action": action,
                },
            )
            raise AuthorizationFailed(
                AuthorizationReason.NOT_PERMITTED,
                f"Operation not permitted: only the creator of a credential may {action} it.",
            )

        return credential
