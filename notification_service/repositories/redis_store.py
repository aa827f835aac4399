"""
Cache-oriented backend on Redis

Key layout:
    notification:<id>        JSON record, expires after the retention window
    recipient:<recipient>    sorted set of notification ids scored by created_at
    template:<id>            JSON record, no expiry
    template:type:<type>     set of template ids
    template:name:<name>     set of template ids
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional
import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from notification_service.core.exceptions import NotFoundError, StorageError
from notification_service.core.monitoring import RepositoryOperationContext
from notification_service.schemas.notification import Notification
from notification_service.schemas.template import Template

from .base import (
    IdLike,
    NotificationRepository,
    TemplateRepository,
    newest_version_first,
    parse_id,
    pick_latest,
)

logger = logging.getLogger(__name__)

BACKEND = "redis"

DEFAULT_RETENTION_SECONDS = 30 * 24 * 60 * 60


def notification_key(notification_id) -> str:
    return f"notification:{notification_id}"


def recipient_key(recipient: str) -> str:
    return f"recipient:{recipient}"


def template_key(template_id) -> str:
    return f"template:{template_id}"


def template_type_key(template_type: str) -> str:
    return f"template:type:{template_type}"


def template_name_key(name: str) -> str:
    return f"template:name:{name}"


@asynccontextmanager
async def _operation(client: redis.Redis, operation: str) -> AsyncGenerator[redis.Redis, None]:
    with RepositoryOperationContext(BACKEND, operation):
        try:
            yield client
        except (RedisError, OSError) as e:
            raise StorageError(f"{operation} failed: {e}") from e


class RedisNotificationRepository(NotificationRepository):
    """Notifications as JSON strings with a per-recipient index

    Both the record and the recipient index expire after the retention window;
    expired index members are pruned when a recipient's history is read.
    """

    def __init__(self, client: redis.Redis, retention_seconds: int = DEFAULT_RETENTION_SECONDS):
        self.client = client
        self.retention_seconds = retention_seconds

    async def save(self, notification: Notification) -> None:
        data = json.dumps(notification.to_record())
        index = recipient_key(notification.recipient)

        async with _operation(self.client, "notification.save") as client:
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(notification_key(notification.id), data, ex=self.retention_seconds)
                pipe.zadd(index, {str(notification.id): notification.created_at.timestamp()})
                pipe.expire(index, self.retention_seconds)
                await pipe.execute()

    async def find_by_id(self, notification_id: IdLike) -> Optional[Notification]:
        uid = parse_id(notification_id)
        if uid is None:
            return None

        async with _operation(self.client, "notification.find_by_id") as client:
            data = await client.get(notification_key(uid))

        if data is None:
            return None
        return Notification.from_record(json.loads(data))

    async def find_by_recipient(
        self,
        recipient: str,
        limit: int = 10,
        offset: int = 0
    ) -> List[Notification]:
        if limit <= 0:
            return []
        offset = max(offset, 0)
        index = recipient_key(recipient)

        async with _operation(self.client, "notification.find_by_recipient") as client:
            ids = await client.zrevrange(index, offset, offset + limit - 1)
            if not ids:
                return []

            records = await client.mget([notification_key(i) for i in ids])

            expired = [i for i, data in zip(ids, records) if data is None]
            if expired:
                await client.zrem(index, *expired)
                logger.debug(f"Pruned {len(expired)} expired entries from {index}")

        return [Notification.from_record(json.loads(data)) for data in records if data is not None]

    async def update(self, notification: Notification) -> None:
        data = json.dumps(notification.to_record())
        index = recipient_key(notification.recipient)

        async with _operation(self.client, "notification.update") as client:
            # XX: only overwrite a record that still exists
            written = await client.set(
                notification_key(notification.id), data, ex=self.retention_seconds, xx=True
            )
            if not written:
                raise NotFoundError(f"notification not found: {notification.id}")
            await client.expire(index, self.retention_seconds)

    async def delete(self, notification_id: IdLike) -> None:
        uid = parse_id(notification_id)
        if uid is None:
            return

        async with _operation(self.client, "notification.delete") as client:
            data = await client.get(notification_key(uid))
            if data is None:
                return
            recipient = json.loads(data).get("recipient", "")

            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(notification_key(uid))
                pipe.zrem(recipient_key(recipient), str(uid))
                await pipe.execute()


class RedisTemplateRepository(TemplateRepository):
    """Templates as JSON strings indexed by type and by name"""

    def __init__(self, client: redis.Redis):
        self.client = client

    async def _load_many(self, client: redis.Redis, set_key: str) -> List[Template]:
        ids = sorted(await client.smembers(set_key))
        if not ids:
            return []

        records = await client.mget([template_key(i) for i in ids])

        stale = [i for i, data in zip(ids, records) if data is None]
        if stale:
            await client.srem(set_key, *stale)

        return [Template.from_record(json.loads(data)) for data in records if data is not None]

    async def save(self, template: Template) -> None:
        async with _operation(self.client, "template.save") as client:
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(template_key(template.id), json.dumps(template.to_record()))
                pipe.sadd(template_type_key(template.type), str(template.id))
                pipe.sadd(template_name_key(template.name), str(template.id))
                await pipe.execute()

    async def find_by_id(self, template_id: IdLike) -> Optional[Template]:
        uid = parse_id(template_id)
        if uid is None:
            return None

        async with _operation(self.client, "template.find_by_id") as client:
            data = await client.get(template_key(uid))

        if data is None:
            return None
        return Template.from_record(json.loads(data))

    async def find_by_type(self, template_type: str) -> List[Template]:
        async with _operation(self.client, "template.find_by_type") as client:
            templates = await self._load_many(client, template_type_key(template_type))
        return newest_version_first(templates)

    async def find_active_by_type(self, template_type: str) -> List[Template]:
        return [t for t in await self.find_by_type(template_type) if t.is_active]

    async def find_by_name(self, name: str) -> Optional[Template]:
        async with _operation(self.client, "template.find_by_name") as client:
            templates = await self._load_many(client, template_name_key(name))
        return pick_latest([t for t in templates if t.is_active])

    async def update(self, template: Template) -> None:
        async with _operation(self.client, "template.update") as client:
            data = await client.get(template_key(template.id))
            if data is None:
                raise NotFoundError(f"template not found: {template.id}")
            previous = json.loads(data)

            template.increment_version()

            async with client.pipeline(transaction=True) as pipe:
                if previous.get("type") != template.type:
                    pipe.srem(template_type_key(previous.get("type", "")), str(template.id))
                if previous.get("name") != template.name:
                    pipe.srem(template_name_key(previous.get("name", "")), str(template.id))
                pipe.set(template_key(template.id), json.dumps(template.to_record()))
                pipe.sadd(template_type_key(template.type), str(template.id))
                pipe.sadd(template_name_key(template.name), str(template.id))
                await pipe.execute()

    async def delete(self, template_id: IdLike) -> None:
        uid = parse_id(template_id)
        if uid is None:
            return

        async with _operation(self.client, "template.delete") as client:
            data = await client.get(template_key(uid))
            if data is None:
                return
            record = json.loads(data)

            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(template_key(uid))
                pipe.srem(template_type_key(record.get("type", "")), str(uid))
                pipe.srem(template_name_key(record.get("name", "")), str(uid))
                await pipe.execute()
