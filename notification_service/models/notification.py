"""
Notification table
"""

from sqlalchemy import Column, String, Text, Integer, Index, Uuid

from .base import Base, JSONType, TimestampedModel


class NotificationRecord(Base, TimestampedModel):
    """Persisted delivery attempt"""

    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True)
    recipient = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)  # email, sms, push

    # Rendered message
    subject = Column(String(255), nullable=False, default="")
    content = Column(Text, nullable=False, default="")

    # Status
    status = Column(String(50), nullable=False)
    priority = Column(String(50), nullable=False)
    error_message = Column(Text, nullable=False, default="")
    retry_count = Column(Integer, nullable=False, default=0)

    # Template binding
    template_id = Column(Uuid(as_uuid=True), nullable=True)
    template_type = Column(String(50), nullable=False, default="")
    template_data = Column(JSONType, nullable=False, default=dict)

    # Metadata
    notification_metadata = Column("metadata", JSONType, nullable=False, default=dict)

    # Indexes
    __table_args__ = (
        Index("idx_notifications_recipient_created", "recipient", "created_at"),
        Index("idx_notifications_status", "status"),
        Index("idx_notifications_template_type", "template_type"),
    )
