"""Health check router for the promduck API.

This module provides health check endpoints for monitoring
and load balancer integration.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from promduck import __version__

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    timestamp: datetime
    version: str


class ReadinessResponse(HealthResponse):
    """Readiness response with the configured backends."""

    writers: list[str]
    readers: list[str]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Example:
        GET /health
        {
            "status": "healthy",
            "version": "0.1.0"
        }
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
)
async def readiness_check(request: Request, response: Response) -> ReadinessResponse:
    """Ready once storage backends are attached; 503 before that."""
    writers = [w.name for w in request.app.state.writers]
    readers = [r.name for r in request.app.state.readers]
    ready = bool(writers) and bool(readers)

    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        writers=writers,
        readers=readers,
    )


@router.get(
    "/live",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
)
async def liveness_check() -> HealthResponse:
    """Liveness check for Kubernetes."""
    return HealthResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
    )
