"""Session value type."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Session(BaseModel):
    """Per-login session state, keyed by an opaque token.

    Invariants (enforced on every construction and every update):
    - selected_org_id, when set, is one of associated_org_ids
    - org_selection_required is True exactly when nothing is selected
      (a single associated org is always auto-selected at creation, so this
      reads as "more than one org, or none, and no selection yet")
    """

    token: str = Field(..., description="Opaque session token")
    user_id: str = Field(..., description="Internal user id")
    subject_id: str = Field(..., description="Upstream subject identifier")
    email: str = Field(..., description="User email")
    selected_org_id: Optional[str] = Field(None, description="Organization the session acts for")
    selected_org_name: Optional[str] = Field(None, description="Display name of the selected organization")
    associated_org_ids: list[str] = Field(
        default_factory=list, description="Snapshot of the user's organizations at login"
    )
    org_selection_required: bool = Field(True, description="True until an organization is selected")

    @model_validator(mode="after")
    def _check_selection(self) -> "Session":
        if self.selected_org_id is not None and self.selected_org_id not in self.associated_org_ids:
            raise ValueError("selected_org_id must be one of associated_org_ids")
        if self.selected_org_id is None:
            self.selected_org_name = None
        self.org_selection_required = self.selected_org_id is None
        return self

    def with_selection(self, org_id: str, org_name: Optional[str]) -> "Session":
        """Copy of this session with ``org_id`` selected (validated)."""
        data = self.model_dump()
        data.update(selected_org_id=org_id, selected_org_name=org_name)
        return Session.model_validate(data)
