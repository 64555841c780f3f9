"""Organization listing (candidates for first-login association)."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as DbSession

from credman_api.auth.dependencies import get_request_context
from credman_api.auth.identity import RequestContext
from credman_api.db.session import get_db
from credman_api.errors import login_required
from credman_api.schemas import OrganizationResponse
from credman_api.services.users import DirectoryService

router = APIRouter(prefix="/v1/organizations", tags=["organizations"])


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    ctx: Optional[RequestContext] = Depends(get_request_context),
    db: DbSession = Depends(get_db),
) -> list[OrganizationResponse]:
    """All organizations. Any resolved identity (session or proxy headers) may list them."""
    if ctx is None:
        raise login_required()
    return [OrganizationResponse.model_validate(org) for org in DirectoryService(db).list_organizations()]
