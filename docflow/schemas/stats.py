from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from docflow.models.portal import UserRole


class UserStats(BaseModel):
    total: int
    uploaded: int
    pending: int
    rejected: int
    upcoming: int
    compliance: int


class UserCompliance(BaseModel):
    user_id: UUID
    compliance: int


class ActivityItem(BaseModel):
    type: str
    title: str
    created_at: datetime | None = None


class AdminStats(BaseModel):
    total_users: int
    new_users_this_month: int
    total_documents: int
    new_documents_this_week: int
    pending_documents: int
    total_deadlines: int
    compliance: int
    compliance_change: int
    overdue: int


class DepartmentCompliance(BaseModel):
    name: str
    percentage: int
    total_users: int
    total_documents: int


class DocumentTypeCount(BaseModel):
    name: str
    count: int


class UserWithStatus(BaseModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    department: str
    role: UserRole
    documents_uploaded: int
    documents_required: int
    documents_count: int
    compliance: int
    status: str
    last_activity: datetime | None = None
