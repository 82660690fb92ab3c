"""FastAPI application for the Volunteer Service."""

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.logging import configure_logging, get_logger
from libs.common.middleware import add_observability_middleware
from services.volunteer_service.routers import admin_router, volunteer_router

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the Volunteer Service FastAPI app."""
    configure_logging()
    settings = get_settings()

    app = FastAPI(
        title="Volunteer Assignment Ledger",
        version="0.1.0",
        description="Volunteer assignments, event capacity and participation history.",
    )
    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": settings.SERVICE_NAME}

    app.include_router(volunteer_router)
    app.include_router(admin_router)

    logger.info("Volunteer service app created (environment=%s)", settings.ENVIRONMENT)
    return app


app = create_app()
