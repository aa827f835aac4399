"""
Template table
"""

from sqlalchemy import Boolean, Column, Index, Integer, String, Text, Uuid

from .base import Base, JSONType, TimestampedModel


class TemplateRecord(Base, TimestampedModel):
    """Versioned message template"""

    __tablename__ = "templates"

    id = Column(Uuid(as_uuid=True), primary_key=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)
    subject = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    variables = Column(JSONType, nullable=False, default=list)
    template_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("idx_templates_type", "type"),
        Index("idx_templates_name_active", "name", "is_active"),
    )
