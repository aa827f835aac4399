"""Models package initialization"""

from .base import Base
from .notification import NotificationRecord
from .template import TemplateRecord

__all__ = [
    "Base",
    "NotificationRecord",
    "TemplateRecord",
]
