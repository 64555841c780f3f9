"""Request context management for observability.

Context variables feed the JSON log formatter only. Business logic never reads
them: identity is passed explicitly as a RequestContext argument.
"""

from contextvars import ContextVar

# Request ID - unique per HTTP request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Acting user (internal id) once the identity resolver has run
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# Organization selected in the acting session
organization_id_var: ContextVar[str] = ContextVar("organization_id", default="")


def clear_identity_vars() -> None:
    """Reset per-request identity vars so nothing leaks into the next request."""
    user_id_var.set("")
    organization_id_var.set("")
