"""Credential lifecycle endpoints.

Every route runs behind the organization membership gate. Only create and
reset-secret responses carry the plaintext secret; GET returns it masked.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session as DbSession

from credman_api.auth.dependencies import get_gated_context, get_secret_codec
from credman_api.auth.identity import RequestContext
from credman_api.db.session import get_db
from credman_api.schemas import CredentialCreateRequest, CredentialResponse
from credman_api.security.secret_codec import SecretCodec
from credman_api.services.credentials import CredentialService, CredentialView

router = APIRouter(prefix="/v1/credentials", tags=["credentials"])


def _service(db: DbSession, codec: SecretCodec) -> CredentialService:
    return CredentialService(db, codec)


def to_response(view: CredentialView) -> CredentialResponse:
    return CredentialResponse.model_validate(view)


@router.post("", response_model=CredentialResponse, status_code=status.HTTP_201_CREATED)
async def create_credential(
    body: CredentialCreateRequest,
    ctx: RequestContext = Depends(get_gated_context),
    db: DbSession = Depends(get_db),
    codec: SecretCodec = Depends(get_secret_codec),
) -> CredentialResponse:
    """Create a credential for the selected organization (secret shown once)."""
    return to_response(_service(db, codec).create(ctx, body.name, body.validity_in_days))


@router.get("/{credential_id}", response_model=CredentialResponse)
async def get_credential(
    credential_id: str,
    ctx: RequestContext = Depends(get_gated_context),
    db: DbSession = Depends(get_db),
    codec: SecretCodec = Depends(get_secret_codec),
) -> CredentialResponse:
    return to_response(_service(db, codec).get(ctx, credential_id))


@router.patch("/{credential_id}/reset-secret", response_model=CredentialResponse)
async def reset_credential_secret(
    credential_id: str,
    ctx: RequestContext = Depends(get_gated_context),
    db: DbSession = Depends(get_db),
    codec: SecretCodec = Depends(get_secret_codec),
) -> CredentialResponse:
    """Rotate the secret in place (new secret shown once)."""
    return to_response(_service(db, codec).reset_secret(ctx, credential_id))


@router.delete("/{credential_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_credential(
    credential_id: str,
    ctx: RequestContext = Depends(get_gated_context),
    db: DbSession = Depends(get_db),
    codec: SecretCodec = Depends(get_secret_codec),
) -> Response:
    _service(db, codec).delete(ctx, credential_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
