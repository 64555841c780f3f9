"""Credential Manager API - FastAPI Application Entry Point."""

import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from credman_api.config.env import (
    get_cors_allowed_origins,
    get_log_level,
    is_json_logging_enabled,
)
from credman_api.context import clear_identity_vars, request_id_var
from credman_api.errors import CredentialManagerError, ErrorKind, problem_status, problem_title
from credman_api.middleware.logging_redaction import LoggingRedactionMiddleware, get_safe_headers
from credman_api.routers import credentials, health, organizations, session, users
from credman_api.schemas import ProblemDetail
from credman_api.security.secret_codec import SecretCodec
from credman_api.sessions.store import SessionStore
from credman_api.utils import configure_json_logging

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://credman.dev/problems"


def _problem_instance() -> str:
    request_id = request_id_var.get()
    return f"urn:credman:trace:{request_id}" if request_id else f"urn:credman:trace:{uuid.uuid4()}"


def _problem_response(
    status_code: int,
    type_slug: str,
    detail: str,
    code: Optional[str] = None,
    errors: Optional[dict[str, str]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/{type_slug}",
        title=problem_title(status_code),
        status=status_code,
        detail=detail,
        instance=_problem_instance(),
        code=code,
        errors=errors,
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


async def credential_manager_error_handler(request: Request, exc: CredentialManagerError) -> JSONResponse:
    """Map core errors to RFC 9457 problems via the closed ErrorKind mapping.

    CODEC failures never carry cryptographic detail: the message is the
    generic one from CodecError and the cause is only logged.
    """
    status_code = problem_status(exc)
    if exc.kind is ErrorKind.CODEC:
        logger.error(
            "Credential processing failed",
            extra={"event": "credential.processing_failed", "path": request.url.path},
        )

    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Session"}

    return _problem_response(
        status_code,
        type_slug=exc.code.lower().replace("_", "-"),
        detail=exc.message,
        code=exc.code,
        errors=exc.field_errors,
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework HTTP errors (404 route, 405 method) in problem+json format."""
    detail = exc.detail if isinstance(exc.detail, str) and exc.detail else problem_title(exc.status_code)
    return _problem_response(
        exc.status_code,
        type_slug=f"http-{exc.status_code}",
        detail=detail,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request validation errors: 422 with every failing field in ``errors``."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        errors.setdefault(field, error.get("msg", "Invalid value"))

    first_field = next(iter(errors), "body")
    return _problem_response(
        422,
        type_slug="validation-error",
        detail=f"Invalid field '{first_field}': {errors.get(first_field, 'Invalid value')}",
        code="VALIDATION_ERROR",
        errors=errors,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Uncaught exceptions: generic 500, traceback logged (sanitized by the formatter)."""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"event": "http.unhandled_exception", "path": request.url.path},
    )
    return _problem_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        type_slug="internal-error",
        detail="An unexpected error occurred. Please try again later.",
        code="INTERNAL_ERROR",
    )


def create_app(
    session_store: Optional[SessionStore] = None,
    secret_codec: Optional[SecretCodec] = None,
) -> FastAPI:
    """Build the application.

    Args:
        session_store: Session backend; built from CREDMAN_SESSION_BACKEND on
            first use when omitted
        secret_codec: Secret codec; built from CREDMAN_ENCRYPTION_KEY_V<n> on
            first use when omitted
    """
    new_app = FastAPI(
        title="Credential Manager API",
        description="Multi-tenant client credential issuance with organization-scoped sessions.",
        version=health.VERSION,
        docs_url="/api-docs",
        redoc_url="/redoc",
    )

    if session_store is not None:
        new_app.state.session_store = session_store
    if secret_codec is not None:
        new_app.state.secret_codec = secret_codec

    new_app.include_router(health.router)
    new_app.include_router(users.router)
    new_app.include_router(organizations.router)
    new_app.include_router(session.router)
    new_app.include_router(credentials.router)

    new_app.add_exception_handler(CredentialManagerError, credential_manager_error_handler)
    new_app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    new_app.add_exception_handler(RequestValidationError, validation_exception_handler)
    new_app.add_exception_handler(Exception, general_exception_handler)

    # Never "*" with credentials
    new_app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    new_app.add_middleware(LoggingRedactionMiddleware)

    # Completion logging; also the per-request identity teardown
    @new_app.middleware("http")
    async def completion_logging_mw(request: Request, call_next):
        """Log every request completion; clear identity contextvars before and after."""
        clear_identity_vars()

        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "http.request.completed",
                extra={
                    "event": "http.request.completed",
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "http.request.headers",
                    extra={
                        "event": "http.request.headers",
                        "path": request.url.path,
                        "request_headers": get_safe_headers(request),
                    },
                )
            clear_identity_vars()

    # Request ID middleware (outermost for context propagation)
    @new_app.middleware("http")
    async def request_id_mw(request: Request, call_next):
        """Accept or generate X-Request-ID and echo it back."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.set("")
        response.headers["X-Request-ID"] = request_id
        return response

    return new_app


if is_json_logging_enabled():
    configure_json_logging(log_level=get_log_level())

app = create_app()
