"""
Notification schemas for request/response validation
"""

from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime
import uuid

from notification_service.schemas.notification import Notification, NotificationPriority


class NotificationCreate(BaseModel):
    """Schema for a direct send"""
    recipient: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=50)
    subject: str = Field("", max_length=255)
    content: str = ""
    priority: NotificationPriority = NotificationPriority.MEDIUM
    template_id: Optional[uuid.UUID] = None
    template_type: str = ""
    template_data: Dict[str, str] = Field(default_factory=dict)
    metadata: Dict[str, str] = Field(default_factory=dict)

    def to_notification(self) -> Notification:
        return Notification.create(
            type=self.type,
            recipient=self.recipient,
            subject=self.subject,
            content=self.content,
            priority=self.priority,
            template_id=self.template_id,
            template_type=self.template_type,
            template_data=self.template_data,
            metadata=self.metadata,
        )


class NotificationResponse(BaseModel):
    """Schema for a stored notification"""
    id: uuid.UUID
    recipient: str
    type: str
    subject: str
    content: str
    status: str
    priority: str
    template_id: Optional[uuid.UUID]
    template_type: str
    template_data: Dict[str, str]
    metadata: Dict[str, str]
    error_message: str
    retry_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationResponse":
        return cls(**notification.model_dump())


class DispatchResponse(BaseModel):
    """Schema for the result of a send or retry"""
    notification: NotificationResponse
    delivered: bool
    persistence_warning: Optional[str] = None
