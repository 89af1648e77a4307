from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from fastapi import HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from docflow.config import settings
from docflow.models.portal import (
    Document,
    DocumentStatus,
    FileType,
    Notification,
    NotificationType,
    User,
)
from docflow.observability import DOCUMENT_UPLOADS
from docflow.services import compliance
from docflow.services.common import coerce_uuid, is_filter_set, validate_choice
from docflow.services.email import dispatcher
from docflow.services.response import ListResponseMixin
from docflow.services.storage import StorageError, storage

logger = logging.getLogger(__name__)

# column widths of documents.document_type and documents.original_name
DOCUMENT_TYPE_MAX_LENGTH = 120
ORIGINAL_NAME_MAX_LENGTH = 500


def get_allowed_types() -> set[str]:
    return {t.strip() for t in settings.upload_allowed_types.split(",") if t.strip()}


def detect_file_type(content_type: str | None) -> FileType:
    content_type = content_type or ""
    if content_type.startswith("image/"):
        return FileType.image
    if content_type.startswith("video/"):
        return FileType.video
    if content_type == "application/pdf":
        return FileType.pdf
    return FileType.other


def validate_upload(content: bytes, content_type: str | None) -> None:
    allowed_types = get_allowed_types()
    if content_type not in allowed_types:
        raise HTTPException(
            status_code=400,
            detail=f"File type not allowed. Allowed: {', '.join(sorted(allowed_types))}",
        )
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(content) > settings.upload_max_size_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size: {settings.upload_max_size_bytes // 1024 // 1024}MB",
        )


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class Documents(ListResponseMixin):
    @staticmethod
    def upload(
        db: Session,
        content: bytes,
        user_id: str,
        document_type: str,
        original_name: str,
        content_type: str | None,
    ) -> Document:
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if not document_type.strip() or not original_name.strip():
            raise HTTPException(status_code=400, detail="Missing required fields")
        if len(document_type) > DOCUMENT_TYPE_MAX_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Document type too long. Maximum: {DOCUMENT_TYPE_MAX_LENGTH} characters",
            )
        if len(original_name) > ORIGINAL_NAME_MAX_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"File name too long. Maximum: {ORIGINAL_NAME_MAX_LENGTH} characters",
            )
        validate_upload(content, content_type)

        try:
            locator = storage.upload(content, original_name, str(user.id), content_type)
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e))

        document = Document(
            user_id=user.id,
            filename=locator.rsplit("/", 1)[-1],
            original_name=original_name,
            file_type=detect_file_type(content_type),
            document_type=document_type,
            file_size=len(content),
            storage_url=locator,
            status=DocumentStatus.pending,
        )
        db.add(document)
        try:
            db.commit()
        except Exception:
            db.rollback()
            # the row never landed, so the blob must not outlive it
            try:
                storage.delete(locator)
            except StorageError as e:
                logger.error("Could not remove orphaned file %s: %s", locator, e)
            raise
        db.refresh(document)
        DOCUMENT_UPLOADS.labels(storage.backend_of(locator)).inc()
        logger.info("Uploaded document %s for user %s", document.id, user.id)
        return document

    @staticmethod
    def record_upload_notification(db: Session, document: Document) -> User | None:
        """Add the in-app upload notice and reload the rows the email needs."""
        user = db.get(User, document.user_id)
        if not user:
            return None
        try:
            db.add(
                Notification(
                    user_id=user.id,
                    type=NotificationType.upload_success,
                    title="Document uploaded",
                    message=f"{document.original_name} was uploaded and is pending review.",
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to record upload notification for %s", document.id)
        db.refresh(document)
        db.refresh(user)
        return user

    @staticmethod
    async def notify_uploaded(db: Session, document: Document) -> None:
        """Best-effort upload confirmation; never fails the upload."""
        user = await run_in_threadpool(
            Documents.record_upload_notification, db, document
        )
        if not user:
            return
        try:
            await dispatcher.notify_document_uploaded(user, document)
        except Exception:
            logger.exception("Upload email for document %s failed", document.id)

    @staticmethod
    def get(db: Session, document_id: str) -> Document | None:
        return db.get(Document, coerce_uuid(document_id))

    @staticmethod
    def list(
        db: Session,
        user_id: str | None = None,
        search: str | None = None,
        document_type: str | None = None,
        status: str | None = None,
        uploaded_on: date | None = None,
        limit: int | None = None,
    ) -> list[Document]:  # type: ignore[override]
        stmt = select(Document)
        if user_id is not None:
            stmt = stmt.where(Document.user_id == coerce_uuid(user_id))
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Document.original_name).like(pattern),
                    func.lower(Document.document_type).like(pattern),
                )
            )
        if is_filter_set(document_type):
            stmt = stmt.where(Document.document_type == document_type)
        if is_filter_set(status):
            stmt = stmt.where(
                Document.status == validate_choice(status, DocumentStatus, "status")
            )
        if uploaded_on is not None:
            start, end = _day_bounds(uploaded_on)
            stmt = stmt.where(Document.uploaded_at >= start, Document.uploaded_at < end)
        stmt = stmt.order_by(Document.uploaded_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list(db.scalars(stmt).all())

    @staticmethod
    def update_status(db: Session, document_id: str, status: str) -> Document:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        new_status = validate_choice(status, DocumentStatus, "status")
        changed = document.status != new_status
        document.status = new_status
        if new_status == DocumentStatus.processed:
            if changed or document.processed_at is None:
                document.processed_at = compliance.utcnow()
        else:
            document.processed_at = None
        if changed:
            db.add(
                Notification(
                    user_id=document.user_id,
                    type=NotificationType.status_change,
                    title="Document reviewed",
                    message=f"{document.original_name} is now {new_status.value}.",
                )
            )
        db.commit()
        db.refresh(document)
        logger.info("Document %s status set to %s", document.id, new_status.value)
        return document

    @staticmethod
    def delete(db: Session, document_id: str) -> None:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        try:
            storage.delete(document.storage_url)
        except StorageError as e:
            logger.error("Could not remove file for document %s: %s", document.id, e)
        db.delete(document)
        db.commit()
        logger.info("Deleted document %s", document_id)

    @staticmethod
    def public_url(db: Session, document_id: str) -> str:
        document = db.get(Document, coerce_uuid(document_id))
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")
        try:
            return storage.public_url(document.storage_url)
        except Exception as e:
            logger.error("Could not resolve URL for document %s: %s", document.id, e)
            raise HTTPException(status_code=500, detail="Could not resolve file URL")

    @staticmethod
    def type_stats(db: Session) -> list[dict]:
        return compliance.document_type_stats(db.scalars(select(Document)))


documents = Documents()
