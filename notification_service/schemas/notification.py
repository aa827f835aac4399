"""Notification entity and its delivery lifecycle"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field

from notification_service.core.exceptions import InvalidNotification, InvalidStatusTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationType(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NotificationPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Notification(BaseModel):
    """
    One delivery attempt record.

    ``type``, ``status`` and ``priority`` hold the plain string values of their
    enums so that records written by other producers (or with an unknown type)
    still load; routing decides what an unknown type means.
    """

    model_config = ConfigDict(use_enum_values=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, frozen=True)
    recipient: str = ""
    type: str = ""
    subject: str = ""
    content: str = ""
    status: str = NotificationStatus.PENDING.value
    priority: str = NotificationPriority.MEDIUM.value
    template_id: Optional[uuid.UUID] = None
    template_type: str = ""
    template_data: Dict[str, str] = Field(default_factory=dict)
    metadata: Dict[str, str] = Field(default_factory=dict)
    error_message: str = ""
    retry_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        type: str,
        recipient: str,
        subject: str = "",
        content: str = "",
        priority: str = NotificationPriority.MEDIUM.value,
        template_id: Optional[uuid.UUID] = None,
        template_type: str = "",
        template_data: Optional[Dict[str, str]] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> "Notification":
        """Build a pending notification with a fresh id"""
        now = utcnow()
        return cls(
            recipient=recipient,
            type=_value(type),
            subject=subject,
            content=content,
            priority=_value(priority),
            template_id=template_id,
            template_type=_value(template_type),
            template_data=dict(template_data or {}),
            metadata=dict(metadata or {}),
            status=NotificationStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

    def validate(self) -> None:
        """Raise InvalidNotification when the record cannot be persisted"""
        if not self.recipient:
            raise InvalidNotification("recipient is required")
        if not self.type:
            raise InvalidNotification("notification type is required")
        if self.template_id is not None and not self.template_type:
            raise InvalidNotification("template type is required")

    # Lifecycle

    def mark_sent(self) -> None:
        allowed = (NotificationStatus.PENDING.value,)
        if self.status == NotificationStatus.FAILED.value and self.retry_count > 0:
            # caller-driven retry of a failed delivery
            allowed = allowed + (NotificationStatus.FAILED.value,)
        self._transition(NotificationStatus.SENT, allowed)
        self.error_message = ""

    def mark_failed(self, reason: str) -> None:
        self.status = NotificationStatus.FAILED.value
        self.error_message = reason
        self.touch()

    def mark_delivered(self) -> None:
        self._transition(NotificationStatus.DELIVERED, (NotificationStatus.SENT.value,))

    def increment_retry_count(self) -> None:
        self.retry_count += 1
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def _transition(self, target: NotificationStatus, allowed: tuple) -> None:
        if self.status not in allowed:
            raise InvalidStatusTransition(self.status, target.value)
        self.status = target.value
        self.touch()

    # Persistence shape

    def to_record(self) -> Dict[str, Any]:
        """Storage-neutral JSON record"""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Notification":
        return cls.model_validate(record)


def _value(value: Any) -> str:
    return value.value if isinstance(value, Enum) else (value or "")
