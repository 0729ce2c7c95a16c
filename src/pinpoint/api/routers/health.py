"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pinpoint.api.dependencies import get_app_settings
from pinpoint.api.schemas import HealthResponse
from pinpoint.core.config import Settings

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check — confirms the service is running."""
    return HealthResponse(status="healthy", services={"api": "running"})


@router.get("/readiness", response_model=HealthResponse)
async def readiness_check(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    """Readiness check — reports whether GitHub calls can be made."""
    github = "configured" if settings.github_token is not None else "missing_token"
    return HealthResponse(
        status="ready" if settings.github_token is not None else "degraded",
        services={"api": "ready", "github": github},
    )
