"""
Storage contracts shared by every backend
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Union
import uuid

from notification_service.schemas.notification import Notification
from notification_service.schemas.template import Template

IdLike = Union[uuid.UUID, str]


def parse_id(value: IdLike) -> Optional[uuid.UUID]:
    """Return the UUID for ``value`` or None when it is not a valid id"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class NotificationRepository(ABC):
    """Persistence of notification records"""

    @abstractmethod
    async def save(self, notification: Notification) -> None:
        """Insert a new record; StorageError on backend failure"""

    @abstractmethod
    async def find_by_id(self, notification_id: IdLike) -> Optional[Notification]:
        """Record by id, None when absent or when the id is malformed"""

    @abstractmethod
    async def find_by_recipient(
        self,
        recipient: str,
        limit: int = 10,
        offset: int = 0
    ) -> List[Notification]:
        """Page of records for a recipient, newest created_at first"""

    @abstractmethod
    async def update(self, notification: Notification) -> None:
        """Overwrite an existing record; NotFoundError when it was never saved"""

    @abstractmethod
    async def delete(self, notification_id: IdLike) -> None:
        """Remove a record; deleting an unknown id is not an error"""


class TemplateRepository(ABC):
    """Persistence of message templates"""

    @abstractmethod
    async def save(self, template: Template) -> None:
        pass

    @abstractmethod
    async def find_by_id(self, template_id: IdLike) -> Optional[Template]:
        pass

    @abstractmethod
    async def find_by_type(self, template_type: str) -> List[Template]:
        """All templates of a type, highest version first"""

    @abstractmethod
    async def find_active_by_type(self, template_type: str) -> List[Template]:
        pass

    @abstractmethod
    async def update(self, template: Template) -> None:
        """Bump the version of ``template`` in place and persist it"""

    @abstractmethod
    async def delete(self, template_id: IdLike) -> None:
        pass

    @abstractmethod
    async def find_by_name(self, name: str) -> Optional[Template]:
        """
        Active template with the given name.

        When several active templates share a name, the one with the highest
        version wins, then the most recently updated one.
        """


def pick_latest(templates: List[Template]) -> Optional[Template]:
    """Deterministic winner among same-name templates"""
    if not templates:
        return None
    return max(templates, key=lambda t: (t.version, t.updated_at))


def newest_version_first(templates: List[Template]) -> List[Template]:
    return sorted(templates, key=lambda t: (t.version, t.updated_at), reverse=True)
