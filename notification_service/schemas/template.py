"""Message template entity"""

from datetime import datetime
from typing import Any, Dict, List
import uuid

from pydantic import BaseModel, Field

from notification_service.core.exceptions import InvalidTemplate
from notification_service.schemas.notification import utcnow


class Template(BaseModel):
    """Named, versioned message blueprint"""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, frozen=True)
    name: str
    type: str
    subject: str = ""
    content: str = ""
    variables: List[str] = Field(default_factory=list)
    metadata: Dict[str, str] = Field(default_factory=dict)
    version: int = 1
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def validate(self) -> None:
        if not self.name:
            raise InvalidTemplate("template name is required")
        if not self.type:
            raise InvalidTemplate("template type is required")
        if not self.subject:
            raise InvalidTemplate("template subject is required")
        if not self.content:
            raise InvalidTemplate("template content is required")

    def increment_version(self) -> None:
        """Increment version number"""
        self.version = (self.version or 0) + 1
        self.updated_at = utcnow()

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Template":
        return cls.model_validate(record)
