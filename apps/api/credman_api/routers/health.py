"""Health check endpoints."""

import logging

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel
from sqlalchemy import text

from credman_api.auth.dependencies import get_session_store
from credman_api.db.session import get_engine

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    services: dict[str, str]


def check_database() -> str:
    """Returns "up" if a trivial query succeeds, an error summary otherwise."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "up"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return f"down: {str(e)[:50]}"


def check_session_store(request: Request) -> str:
    """Returns "up" if the session backend answers, an error summary otherwise."""
    try:
        if not get_session_store(request).ping():
            return "down: no pong"
        return "up"
    except Exception as e:
        logger.error(f"Session store health check failed: {e}")
        return f"down: {str(e)[:50]}"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """Service status and dependency health. 503 if any dependency is down."""
    services = {
        "api": "up",
        "database": check_database(),
        "sessions": check_session_store(request),
    }

    if any(svc_status.startswith("down") for svc_status in services.values()):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="degraded", version=VERSION, services=services)

    return HealthResponse(status="healthy", version=VERSION, services=services)
