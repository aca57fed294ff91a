"""
User-visible notification schema
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from fleetsync.schemas.device import AgentModel, utcnow


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(AgentModel):
    """One toast-style message for the operator"""
    level: NotificationLevel = Field(..., description="Severity")
    message: str = Field(..., description="Headline")
    description: Optional[str] = Field(None, description="Secondary detail")
    created_at: datetime = Field(default_factory=utcnow)
