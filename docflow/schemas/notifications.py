from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from docflow.models.portal import NotificationType


class NotificationCreate(BaseModel):
    user_id: UUID
    type: str = "system"
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)
    scheduled_for: datetime | None = None


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    is_read: bool
    read_at: datetime | None = None
    sent_at: datetime
    scheduled_for: datetime | None = None


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    marked: int
