"""User and organization directory, scoped to the caller's tenant."""

from sqlalchemy.orm import Session as DbSession

from credman_api.auth.identity import RequestContext
from credman_api.db.models import Organization, User
from credman_api.db.repositories import OrganizationRepository, UserRepository
from credman_api.errors import ResourceNotFound, org_selection_required


class DirectoryService:
    def __init__(self, db: DbSession):
        self.users = UserRepository(db)
        self.organizations = OrganizationRepository(db)

    def list_users(self, ctx: RequestContext) -> list[User]:
        """Members of the organization selected in the caller's session."""
        if ctx.selected_org_id is None:
            raise org_selection_required()
        return self.users.find_members_of_org(ctx.selected_org_id)

    def get_user(self, ctx: RequestContext, user_id: str) -> User:
        """A single user, visible only if they share the selected organization."""
        if ctx.selected_org_id is None:
            raise org_selection_required()
        user = self.users.find_by_id(user_id)
        if user is None or not self.users.is_member_of_org(user.id, ctx.selected_org_id):
            raise ResourceNotFound("user", user_id)
        return user

    def list_organizations(self) -> list[Organization]:
        return self.organizations.find_all()
