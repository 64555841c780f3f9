"""Pydantic request/response schemas for the credential manager API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# RFC 9457 Problem Details
# ============================================================================


class ProblemDetail(BaseModel):
    """RFC 9457 Problem Details for HTTP API errors.

    Extension members:
    - code: stable machine-readable error code (e.g. CREDENTIAL_NOT_FOUND)
    - errors: field -> message map for validation failures
    """

    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str | dict[str, Any] = Field(..., description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference identifying the specific occurrence")
    code: Optional[str] = Field(None, description="Machine-readable error code")
    errors: Optional[dict[str, str]] = Field(None, description="Field-level validation errors")


# ============================================================================
# Organizations / Users
# ============================================================================


class OrganizationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Organization id")
    name: str = Field(..., description="Organization name")


class OrganizationResponse(OrganizationSummary):
    vat_number: Optional[str] = Field(None, description="VAT registration number")
    sap_id: Optional[str] = Field(None, description="External ERP identifier")


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Internal user id")
    email: str = Field(..., description="User email")
    first_name: Optional[str] = Field(None, description="First name")
    last_name: Optional[str] = Field(None, description="Last name")
    created_at: datetime = Field(..., description="Creation timestamp")


# ============================================================================
# POST /v1/users/login
# ============================================================================


class LoginRequest(BaseModel):
    """Optional login body. Identity itself comes from the trusted proxy headers."""

    first_name: Optional[str] = Field(None, description="First name (stored on first login)", max_length=255)
    last_name: Optional[str] = Field(None, description="Last name (stored on first login)", max_length=255)
    associate_with_org_ids: Optional[list[str]] = Field(
        None, description="Organizations to associate with (first login only)"
    )


class LoginResponse(BaseModel):
    email: str = Field(..., description="User email")
    is_first_login: bool = Field(..., description="True when the user did not exist before this login")
    requires_org_selection: bool = Field(..., description="True until an organization is selected")
    message: str = Field(..., description="Next step for the client")
    available_orgs: list[OrganizationSummary] = Field(
        default_factory=list, description="Candidate organizations to associate with or select"
    )
    associated_orgs: list[OrganizationSummary] = Field(
        default_factory=list, description="Organizations the user belongs to"
    )
    session_id: Optional[str] = Field(None, description="Session token (also set as cookie)")
    association_ignored: bool = Field(
        False, description="True when org ids were sent by a returning user and ignored"
    )


# ============================================================================
# /v1/session
# ============================================================================


class SelectOrganizationRequest(BaseModel):
    organization_id: str = Field(..., description="Organization to act for", min_length=1)


class SessionResponse(BaseModel):
    user_id: str = Field(..., description="Internal user id")
    email: str = Field(..., description="User email")
    selected_org_id: Optional[str] = Field(None, description="Selected organization id")
    selected_org_name: Optional[str] = Field(None, description="Selected organization name")
    associated_org_ids: list[str] = Field(default_factory=list, description="User's organizations")
    org_selection_required: bool = Field(..., description="True until an organization is selected")


# ============================================================================
# /v1/credentials
# ============================================================================


class CredentialCreateRequest(BaseModel):
    name: str = Field(..., description="Human-readable credential name", min_length=1, max_length=255)
    validity_in_days: int = Field(..., description="Days until expiry", ge=1, le=90)


class CredentialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Credential id")
    client_id: str = Field(..., description="Client identifier")
    client_secret: str = Field(..., description="Secret: unmasked on create/reset only, masked otherwise")
    name: str = Field(..., description="Credential name")
    organization_id: str = Field(..., description="Owning organization")
    created_at: datetime = Field(..., description="Creation timestamp")
    expires_at: datetime = Field(..., description="Expiration timestamp")
