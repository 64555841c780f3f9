"""Identity context resolution.

FLOW:
1. A live session (cookie) is authoritative: the context is built entirely
   from session state
2. Otherwise trusted upstream headers (subject id + email, set by the
   authenticating proxy on the login path) yield a minimal context with no
   organization selected
3. Otherwise there is no context

The resolved context is an explicit value handed down through FastAPI
dependencies. The logging contextvars it populates are cleared by the
dependency teardown and by the HTTP completion middleware.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from credman_api.config.env import get_trusted_email_header, get_trusted_subject_header
from credman_api.context import organization_id_var, user_id_var
from credman_api.sessions.store import SessionStore


class ContextSource(str, Enum):
    SESSION = "session"
    HEADERS = "headers"


@dataclass(frozen=True)
class RequestContext:
    """Resolved identity for one request."""

    subject_id: str
    email: str
    source: ContextSource
    user_id: Optional[str] = None
    selected_org_id: Optional[str] = None
    selected_org_name: Optional[str] = None
    org_selection_required: bool = True
    session_token: Optional[str] = None
    associated_org_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_session(self) -> bool:
        return self.source is ContextSource.SESSION


def resolve_request_context(
    session_store: SessionStore,
    session_token: Optional[str],
    headers: Mapping[str, str],
) -> Optional[RequestContext]:
    """Build the RequestContext for a request, or None if no identity applies."""
    session = session_store.get(session_token) if session_token else None
    if session is not None:
        return RequestContext(
            subject_id=session.subject_id,
            email=session.email,
            source=ContextSource.SESSION,
            user_id=session.user_id,
            selected_org_id=session.selected_org_id,
            selected_org_name=session.selected_org_name,
            org_selection_required=session.org_selection_required,
            session_token=session.token,
            associated_org_ids=tuple(session.associated_org_ids),
        )

    subject_id = (headers.get(get_trusted_subject_header()) or "").strip()
    email = (headers.get(get_trusted_email_header()) or "").strip()
    if subject_id and email:
        return RequestContext(subject_id=subject_id, email=email, source=ContextSource.HEADERS)

    return None


def bind_log_context(ctx: Optional[RequestContext]) -> None:
    """Expose the acting user/org to the JSON log formatter."""
    user_id_var.set(ctx.user_id or "" if ctx else "")
    organization_id_var.set(ctx.selected_org_id or "" if ctx else "")
