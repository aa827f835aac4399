"""Storage backends and backend selection"""

from typing import Union
import logging

from notification_service.core.cache import RedisConnection
from notification_service.core.config import Settings
from notification_service.core.database import Database

from .base import NotificationRepository, TemplateRepository
from .redis_store import RedisNotificationRepository, RedisTemplateRepository
from .sql_store import SQLNotificationRepository, SQLTemplateRepository

logger = logging.getLogger(__name__)

BACKENDS = ("postgres", "redis")


class Storage:
    """Repositories of one backend plus the connection they share"""

    def __init__(
        self,
        backend: str,
        notifications: NotificationRepository,
        templates: TemplateRepository,
        connection: Union[Database, RedisConnection],
    ):
        self.backend = backend
        self.notifications = notifications
        self.templates = templates
        self.connection = connection

    async def ping(self) -> None:
        await self.connection.ping()

    async def close(self) -> None:
        await self.connection.disconnect()


async def build_storage(settings: Settings, redis_client=None) -> Storage:
    """
    Connect the backend named by ``STORE_BACKEND``.

    ``redis_client`` replaces the client built from ``REDIS_URL`` (tests pass
    a fakeredis instance here).
    """
    backend = settings.STORE_BACKEND.lower()

    if backend == "postgres":
        database = Database(settings)
        await database.connect()
        logger.info("Using relational notification store")
        return Storage(
            backend,
            SQLNotificationRepository(database),
            SQLTemplateRepository(database),
            database,
        )

    if backend == "redis":
        connection = RedisConnection(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            client=redis_client,
        )
        client = await connection.connect()
        logger.info("Using Redis notification store")
        return Storage(
            backend,
            RedisNotificationRepository(client, retention_seconds=settings.retention_seconds),
            RedisTemplateRepository(client),
            connection,
        )

    raise ValueError(f"unknown store backend: {settings.STORE_BACKEND} (expected one of {', '.join(BACKENDS)})")


__all__ = [
    "NotificationRepository",
    "TemplateRepository",
    "Storage",
    "build_storage",
]
