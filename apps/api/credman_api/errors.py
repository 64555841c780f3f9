"""Domain errors for the credential manager.

Every failure raised by the core is one of four kinds. The HTTP boundary maps
the kind (and, for authorization, the reason) to a status code in one place,
see ``problem_status`` below.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    AUTHORIZATION = "AUTHORIZATION"
    CODEC = "CODEC"


class AuthorizationReason(str, Enum):
    LOGIN_REQUIRED = "LOGIN_REQUIRED"
    ORG_SELECTION_REQUIRED = "ORG_SELECTION_REQUIRED"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    NOT_PERMITTED = "NOT_PERMITTED"


class CredentialManagerError(Exception):
    """Base class for all core errors.

    Attributes:
        kind: Closed error category
        code: Stable machine-readable code (e.g. CREDENTIAL_NOT_FOUND)
        message: Human-readable message, safe to show to the caller
        field_errors: Optional field -> message map (validation only)
    """

    kind: ErrorKind

    def __init__(self, code: str, message: str, field_errors: Optional[dict[str, str]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.field_errors = field_errors


class ValidationFailed(CredentialManagerError):
    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        field_errors: Optional[dict[str, str]] = None,
        code: str = "VALIDATION_ERROR",
    ):
        super().__init__(code, message, field_errors)


class ResourceNotFound(CredentialManagerError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            f"{resource.upper()}_NOT_FOUND",
            f"{resource.capitalize()} not found: {resource_id}",
        )


class AuthorizationFailed(CredentialManagerError):
    kind = ErrorKind.AUTHORIZATION

    def __init__(self, reason: AuthorizationReason, message: str):
        self.reason = reason
        super().__init__(reason.value, message)


class CodecError(CredentialManagerError):
    """Encryption or decryption failed.

    The message is deliberately generic; cryptographic detail is logged
    internally and never surfaced.
    """

    kind = ErrorKind.CODEC

    def __init__(self, message: str = "Credential processing failed"):
        super().__init__("CREDENTIAL_PROCESSING_FAILED", message)


def login_required(message: str = "Operation not allowed. Please log in first.") -> AuthorizationFailed:
    return AuthorizationFailed(AuthorizationReason.LOGIN_REQUIRED, message)


def org_selection_required() -> AuthorizationFailed:
    return AuthorizationFailed(
        AuthorizationReason.ORG_SELECTION_REQUIRED,
        "Organization selection required. Select an organization for this session via POST /v1/session/org.",
    )


def problem_status(error: CredentialManagerError) -> int:
    """HTTP status for a core error (the only kind -> status mapping)."""
    if error.kind is ErrorKind.VALIDATION:
        return 422
    if error.kind is ErrorKind.NOT_FOUND:
        return 404
    if error.kind is ErrorKind.AUTHORIZATION:
        if getattr(error, "reason", None) is AuthorizationReason.LOGIN_REQUIRED:
            return 401
        return 403
    return 500


def problem_title(status_code: int) -> str:
    """Human-readable title for an HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        422: "Unprocessable Entity",
        429: "Too Many Requests",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")
