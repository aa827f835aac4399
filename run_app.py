#!/usr/bin/env python3
"""
Notification Service Runner
===========================

Run the HTTP API or the event stream consumer.

Usage:
    python run_app.py                      # API server (default)
    python run_app.py --mode dev           # API with auto-reload
    python run_app.py --mode prod          # API with workers, no reload
    python run_app.py --mode consumer      # Redis Streams event consumer
    python run_app.py --port 8081          # Custom port
    python run_app.py --host 127.0.0.1     # Custom host
"""

import argparse
import asyncio
import logging
import signal
import sys

from notification_service.core.config import settings
from notification_service.core.logging import setup_logging

logger = logging.getLogger("run_app")


def run_api(host: str, port: int, reload: bool, workers: int = 1):
    """Run the FastAPI application"""
    import uvicorn

    logger.info(f"Starting API on {host}:{port}")
    uvicorn.run(
        "notification_service.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=1 if reload else workers,
        log_level=settings.LOG_LEVEL.lower()
    )


async def run_consumer():
    """Consume user events until SIGINT/SIGTERM"""
    import redis.asyncio as redis

    from notification_service.core.health import HealthChecker
    from notification_service.core.monitoring import NullObserver, PrometheusObserver
    from notification_service.repositories import build_storage
    from notification_service.services.event_consumer import EventConsumer
    from notification_service.services.notification_service import build_notification_service
    from notification_service.services.template_seeder import seed_default_templates

    storage = await build_storage(settings)
    stream_client = redis.from_url(settings.STREAM_REDIS_URL, encoding="utf-8", decode_responses=True)
    health_checker = HealthChecker(
        storage.ping,
        interval=settings.HEALTH_CHECK_INTERVAL,
        timeout=settings.HEALTH_CHECK_TIMEOUT
    )

    try:
        if settings.SEED_DEFAULT_TEMPLATES:
            await seed_default_templates(storage.templates)

        service = build_notification_service(
            storage,
            settings,
            observer=PrometheusObserver() if settings.PROMETHEUS_ENABLED else NullObserver()
        )
        consumer = EventConsumer(
            service,
            stream_client,
            streams=settings.STREAM_TOPICS,
            group=settings.STREAM_CONSUMER_GROUP,
            consumer_name=settings.STREAM_CONSUMER_NAME,
            block_ms=settings.STREAM_BLOCK_MS,
            batch_size=settings.STREAM_BATCH_SIZE
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, consumer.stop)

        await health_checker.start()
        await consumer.run()
    finally:
        await health_checker.stop()
        await stream_client.aclose()
        await storage.close()


def main():
    parser = argparse.ArgumentParser(
        description="Notification Service Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_app.py                      # API on port 8080
  python run_app.py --mode consumer      # Event consumer
  python run_app.py --mode dev           # Development mode
        """
    )

    parser.add_argument(
        "--mode",
        choices=["api", "dev", "prod", "consumer"],
        default="api",
        help="What to run (default: api)"
    )
    parser.add_argument(
        "--host",
        default=settings.HOST,
        help=f"Host to bind to (default: {settings.HOST})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help=f"Port to bind to (default: {settings.PORT})"
    )

    args = parser.parse_args()

    setup_logging()

    if args.mode == "consumer":
        asyncio.run(run_consumer())
    elif args.mode == "dev":
        run_api(args.host, args.port, reload=True)
    elif args.mode == "prod":
        run_api(args.host, args.port, reload=False, workers=settings.WORKERS)
    else:
        run_api(args.host, args.port, reload=settings.DEBUG)

    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        sys.exit(0)
