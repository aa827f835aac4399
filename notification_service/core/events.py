"""
Application lifecycle events
Handles startup and shutdown tasks
"""

from fastapi import FastAPI
import logging
from contextlib import asynccontextmanager

from notification_service.repositories import build_storage
from notification_service.services.notification_service import build_notification_service
from notification_service.services.template_seeder import seed_default_templates

from .health import HealthChecker
from .logging import setup_logging
from .monitoring import NullObserver, PrometheusObserver

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Handles startup and shutdown events
    """
    settings = app.state.settings

    # Startup
    setup_logging()
    logger.info(f"Starting {settings.APP_NAME}...")

    storage = await build_storage(settings)
    app.state.storage = storage
    health_checker = None

    try:
        if settings.SEED_DEFAULT_TEMPLATES:
            created = await seed_default_templates(storage.templates)
            logger.info(f"Template store ready ({created} default templates added)")

        observer = PrometheusObserver() if settings.PROMETHEUS_ENABLED else NullObserver()
        app.state.notification_service = build_notification_service(
            storage,
            settings,
            providers=app.state.providers,
            observer=observer,
        )

        health_checker = HealthChecker(
            storage.ping,
            interval=settings.HEALTH_CHECK_INTERVAL,
            timeout=settings.HEALTH_CHECK_TIMEOUT,
        )
        await health_checker.start()
        app.state.health_checker = health_checker

        logger.info(f"{settings.APP_NAME} started successfully")

        yield

    finally:
        # Shutdown
        logger.info(f"Shutting down {settings.APP_NAME}...")

        if health_checker is not None:
            await health_checker.stop()

        await storage.close()
        logger.info(f"{settings.APP_NAME} shutdown complete")
