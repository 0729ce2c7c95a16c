"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from pinpoint.api.dependencies import get_app_settings
from pinpoint.api.middleware import setup_exception_handlers, setup_middleware
from pinpoint.api.routers import health, positions, reviews
from pinpoint.core.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This is the factory function used by uvicorn:
        uvicorn pinpoint.api.app:create_app --factory --reload
    """
    settings = get_app_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        debug=settings.debug,
        title="Pinpoint",
        description="Diff-position-aware GitHub PR review posting",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)
    setup_exception_handlers(app)

    # API Routes (prefixed with /api/v1)
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(positions.router, prefix="/api/v1")
    app.include_router(reviews.router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root():
        """Root redirect to docs."""
        return RedirectResponse(url="/docs")

    logger.info("app_created", version="0.1.0")
    return app
