from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from docflow.services.compliance import UrgencyBucket


class DeadlineBase(BaseModel):
    user_id: UUID | None = None
    document_type: str = Field(min_length=1, max_length=120)
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    due_date: datetime
    is_global: bool = False


class DeadlineCreate(DeadlineBase):
    created_by: UUID | None = None


class DeadlineUpdate(BaseModel):
    user_id: UUID | None = None
    document_type: str | None = Field(default=None, min_length=1, max_length=120)
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    due_date: datetime | None = None
    is_global: bool | None = None


class DeadlineRead(DeadlineBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_by: UUID | None = None
    created_at: datetime


class DeadlineWithUrgency(DeadlineRead):
    days_left: int
    urgency: UrgencyBucket


class DeadlineGroup(BaseModel):
    urgency: UrgencyBucket
    items: list[DeadlineWithUrgency]
