from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .common import new_id, utcnow

NotificationCategory = Literal["drive", "assessment", "shortlist", "general"]


class Notification(BaseModel):
    """Append-only message addressed to one student."""

    notification_id: str = Field(default_factory=new_id)
    usn: str
    title: str
    message: str
    category: NotificationCategory = "general"
    drive_id: str | None = None
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")
