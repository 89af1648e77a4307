from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from docflow.models.portal import DocumentStatus, FileType
from docflow.schemas.users import UserSummary


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    filename: str
    original_name: str
    file_type: FileType
    document_type: str
    file_size: int
    storage_url: str
    status: DocumentStatus
    uploaded_at: datetime
    processed_at: datetime | None = None


class DocumentWithOwner(DocumentRead):
    user: UserSummary | None = None


class DocumentStatusUpdate(BaseModel):
    status: str


class DocumentURLResponse(BaseModel):
    url: str
