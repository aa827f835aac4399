"""Base models and mixins for database models"""

from sqlalchemy import Column, DateTime, JSON, inspect
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, declared_attr
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# Create declarative base
class Base(DeclarativeBase):
    pass


class TimestampedModel:
    """Mixin for adding created_at and updated_at timestamps

    Values are always written by the application from the entity so that the
    stored timestamps match what the caller observed.
    """

    @declared_attr
    def created_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False,
            index=True
        )

    @declared_attr
    def updated_at(cls):
        return Column(
            DateTime(timezone=True),
            nullable=False
        )


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Re-attach UTC to naive datetimes returned by drivers without tz support"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_dict(row: Base, exclude: Optional[list] = None) -> Dict[str, Any]:
    """Convert model instance to a dictionary keyed by column name"""
    exclude = exclude or []
    result = {}

    # attribute keys differ from column names where a column is called "metadata"
    for attr in inspect(row).mapper.column_attrs:
        name = attr.columns[0].name
        if name not in exclude:
            value = getattr(row, attr.key)
            if isinstance(value, datetime):
                value = as_utc(value)
            result[name] = value

    return result


def create_tables(connection) -> None:
    """Create all tables"""
    Base.metadata.create_all(bind=connection)


__all__ = [
    'Base',
    'JSONType',
    'TimestampedModel',
    'as_utc',
    'to_dict',
    'create_tables',
]
