"""
Main FastAPI application
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import logging

from notification_service.core.config import Settings, settings as default_settings
from notification_service.core.events import lifespan
from notification_service.core.exceptions import DeliveryError, NotificationServiceError
from notification_service.api import health_router, v1_router
from notification_service.services.providers import ProviderRegistry

logger = logging.getLogger(__name__)


async def notification_error_handler(request: Request, exc: NotificationServiceError):
    """Render service errors as {"error": {"code", "message"}}"""
    content = {
        "error": {
            "code": exc.error_code,
            "message": exc.detail
        }
    }
    if isinstance(exc, DeliveryError) and exc.outcome is not None:
        content["notification"] = exc.outcome.notification.to_record()
        if exc.outcome.persistence_warning:
            content["persistence_warning"] = exc.outcome.persistence_warning

    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.error_code} {exc.detail}")

    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(
    settings: Optional[Settings] = None,
    providers: Optional[ProviderRegistry] = None
) -> FastAPI:
    """
    Build the API application.

    ``providers`` replaces the SMTP/Twilio/Firebase registry built from
    settings at startup.
    """
    settings = settings or default_settings

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Event-driven notification dispatcher",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.providers = providers
    app.state.storage = None
    app.state.notification_service = None

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(NotificationServiceError, notification_error_handler)

    # Include routers
    app.include_router(health_router, tags=["Health"])
    app.include_router(v1_router, prefix="/api/v1")

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/api/docs"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "notification_service.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        workers=1 if default_settings.DEBUG else default_settings.WORKERS
    )
