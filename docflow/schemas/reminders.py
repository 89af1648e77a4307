from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ReminderBase(BaseModel):
    deadline_id: UUID
    user_id: UUID | None = None
    reminder_time: datetime
    send_email: bool = True
    send_sms: bool = False
    send_push: bool = True


class ReminderCreate(ReminderBase):
    pass


class ReminderUpdate(BaseModel):
    deadline_id: UUID | None = None
    user_id: UUID | None = None
    reminder_time: datetime | None = None
    send_email: bool | None = None
    send_sms: bool | None = None
    send_push: bool | None = None
    is_sent: bool | None = None


class ReminderRead(ReminderBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    is_sent: bool
    sent_at: datetime | None = None
    created_at: datetime


class ReminderSendResponse(BaseModel):
    message: str
    recipients: int
    emails_sent: int
    notifications_created: int
