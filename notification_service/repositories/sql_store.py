"""
Relational backend (SQLAlchemy async; PostgreSQL in production, SQLite in tests)
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notification_service.core.database import Database
from notification_service.core.exceptions import NotFoundError, StorageError
from notification_service.core.monitoring import RepositoryOperationContext
from notification_service.models.base import to_dict
from notification_service.models.notification import NotificationRecord
from notification_service.models.template import TemplateRecord
from notification_service.schemas.notification import Notification
from notification_service.schemas.template import Template

from .base import IdLike, NotificationRepository, TemplateRepository, parse_id

logger = logging.getLogger(__name__)

BACKEND = "postgres"


@asynccontextmanager
async def _unit_of_work(database: Database, operation: str) -> AsyncGenerator[AsyncSession, None]:
    """Session scoped to one repository call, with driver errors as StorageError"""
    with RepositoryOperationContext(BACKEND, operation):
        try:
            async with database.session() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"{operation} failed: {e}") from e


def _apply_notification(row: NotificationRecord, notification: Notification) -> None:
    row.recipient = notification.recipient
    row.type = notification.type
    row.subject = notification.subject
    row.content = notification.content
    row.status = notification.status
    row.priority = notification.priority
    row.template_id = notification.template_id
    row.template_type = notification.template_type
    row.template_data = dict(notification.template_data)
    row.notification_metadata = dict(notification.metadata)
    row.error_message = notification.error_message
    row.retry_count = notification.retry_count
    row.created_at = notification.created_at
    row.updated_at = notification.updated_at


def _apply_template(row: TemplateRecord, template: Template) -> None:
    row.name = template.name
    row.type = template.type
    row.subject = template.subject
    row.content = template.content
    row.variables = list(template.variables)
    row.template_metadata = dict(template.metadata)
    row.version = template.version
    row.is_active = template.is_active
    row.created_at = template.created_at
    row.updated_at = template.updated_at


class SQLNotificationRepository(NotificationRepository):
    """Notifications in the ``notifications`` table, kept indefinitely"""

    def __init__(self, database: Database):
        self.database = database

    async def save(self, notification: Notification) -> None:
        async with _unit_of_work(self.database, "notification.save") as session:
            row = NotificationRecord(id=notification.id)
            _apply_notification(row, notification)
            session.add(row)

    async def find_by_id(self, notification_id: IdLike) -> Optional[Notification]:
        uid = parse_id(notification_id)
        if uid is None:
            return None

        async with _unit_of_work(self.database, "notification.find_by_id") as session:
            row = await session.get(NotificationRecord, uid)
            return Notification.from_record(to_dict(row)) if row else None

    async def find_by_recipient(
        self,
        recipient: str,
        limit: int = 10,
        offset: int = 0
    ) -> List[Notification]:
        if limit <= 0:
            return []

        async with _unit_of_work(self.database, "notification.find_by_recipient") as session:
            result = await session.execute(
                select(NotificationRecord)
                .where(NotificationRecord.recipient == recipient)
                .order_by(NotificationRecord.created_at.desc())
                .limit(limit)
                .offset(max(offset, 0))
            )
            return [Notification.from_record(to_dict(row)) for row in result.scalars()]

    async def update(self, notification: Notification) -> None:
        async with _unit_of_work(self.database, "notification.update") as session:
            row = await session.get(NotificationRecord, notification.id)
            if row is None:
                raise NotFoundError(f"notification not found: {notification.id}")
            _apply_notification(row, notification)

    async def delete(self, notification_id: IdLike) -> None:
        uid = parse_id(notification_id)
        if uid is None:
            return

        async with _unit_of_work(self.database, "notification.delete") as session:
            await session.execute(delete(NotificationRecord).where(NotificationRecord.id == uid))


class SQLTemplateRepository(TemplateRepository):
    """Templates in the ``templates`` table"""

    def __init__(self, database: Database):
        self.database = database

    async def save(self, template: Template) -> None:
        async with _unit_of_work(self.database, "template.save") as session:
            row = TemplateRecord(id=template.id)
            _apply_template(row, template)
            session.add(row)

    async def find_by_id(self, template_id: IdLike) -> Optional[Template]:
        uid = parse_id(template_id)
        if uid is None:
            return None

        async with _unit_of_work(self.database, "template.find_by_id") as session:
            row = await session.get(TemplateRecord, uid)
            return Template.from_record(to_dict(row)) if row else None

    async def _select(self, operation: str, *criteria) -> List[Template]:
        async with _unit_of_work(self.database, operation) as session:
            result = await session.execute(
                select(TemplateRecord)
                .where(*criteria)
                .order_by(TemplateRecord.version.desc(), TemplateRecord.updated_at.desc())
            )
            return [Template.from_record(to_dict(row)) for row in result.scalars()]

    async def find_by_type(self, template_type: str) -> List[Template]:
        return await self._select("template.find_by_type", TemplateRecord.type == template_type)

    async def find_active_by_type(self, template_type: str) -> List[Template]:
        return await self._select(
            "template.find_active_by_type",
            TemplateRecord.type == template_type,
            TemplateRecord.is_active.is_(True),
        )

    async def find_by_name(self, name: str) -> Optional[Template]:
        templates = await self._select(
            "template.find_by_name",
            TemplateRecord.name == name,
            TemplateRecord.is_active.is_(True),
        )
        return templates[0] if templates else None

    async def update(self, template: Template) -> None:
        async with _unit_of_work(self.database, "template.update") as session:
            row = await session.get(TemplateRecord, template.id)
            if row is None:
                raise NotFoundError(f"template not found: {template.id}")
            template.increment_version()
            _apply_template(row, template)

    async def delete(self, template_id: IdLike) -> None:
        uid = parse_id(template_id)
        if uid is None:
            return

        async with _unit_of_work(self.database, "template.delete") as session:
            await session.execute(delete(TemplateRecord).where(TemplateRecord.id == uid))
