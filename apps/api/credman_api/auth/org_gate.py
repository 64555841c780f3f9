"""Organization membership gate.

Runs before every protected operation:
- no context                                  -> LOGIN_REQUIRED (401)
- no org selected, user has >1 membership     -> ORG_SELECTION_REQUIRED (403)
- org selected, user not a live member of it  -> NOT_A_MEMBER (403)
- otherwise                                   -> allowed

Membership is checked against storage on every call, never against the
session snapshot, so a revoked membership is caught while the session
still lists it.
"""

import logging
from typing import Optional

from credman_api.auth.identity import RequestContext
from credman_api.db.repositories import UserRepository
from credman_api.errors import AuthorizationFailed, AuthorizationReason, login_required, org_selection_required

logger = logging.getLogger(__name__)


class OrganizationGate:
    def __init__(self, users: UserRepository):
        self.users = users

    def check(self, ctx: Optional[RequestContext]) -> RequestContext:
        """Return ``ctx`` if the request may proceed, raise AuthorizationFailed otherwise."""
        if ctx is None or ctx.user_id is None:
            self._deny(ctx, AuthorizationReason.LOGIN_REQUIRED)
            raise login_required()

        if ctx.selected_org_id is None:
            if self.users.count_memberships(ctx.user_id) > 1:
                self._deny(ctx, AuthorizationReason.ORG_SELECTION_REQUIRED)
                raise org_selection_required()
            return ctx

        if not self.users.is_member_of_org(ctx.user_id, ctx.selected_org_id):
            self._deny(ctx, AuthorizationReason.NOT_A_MEMBER)
            raise AuthorizationFailed(
                AuthorizationReason.NOT_A_MEMBER,
                "You are not a member of the selected organization.",
            )

        return ctx

    @staticmethod
    def _deny(ctx: Optional[RequestContext], reason: AuthorizationReason) -> None:
        logger.warning(
            "Organization gate denied request",
            extra={
                "event": "gate.denied",
                "reason": reason.value,
                "context_source": ctx.source.value if ctx else None,
                "selected_org_id": ctx.selected_org_id if ctx else None,
            },
        )
