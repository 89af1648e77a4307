import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from docflow.models.portal import DocumentStatus, Notification, NotificationType
from docflow.services import documents as documents_module
from docflow.services.documents import Documents, detect_file_type
from docflow.services.storage import LocalStore, parse_locator

PDF = b"%PDF-1.4 test"


def _loop_recorder(original, seen):
    def wrapper(*args, **kwargs):
        try:
            asyncio.get_running_loop()
            seen.append(True)
        except RuntimeError:
            seen.append(False)
        return original(*args, **kwargs)

    return wrapper


def _upload(db_session, owner, **overrides):
    values = dict(
        content=PDF,
        user_id=str(owner.id),
        document_type="ID",
        original_name="passport.pdf",
        content_type="application/pdf",
    )
    values.update(overrides)
    return Documents.upload(db_session, **values)


class TestDocumentsUpload:
    def test_upload_stores_locally(self, db_session, user):
        document = _upload(db_session, user)
        assert document.status == DocumentStatus.pending
        assert document.file_size == len(PDF)
        assert document.file_type.value == "pdf"
        backend, relative = parse_locator(document.storage_url)
        assert backend == "local"
        assert LocalStore.resolve(relative).read_bytes() == PDF
        assert document.filename == relative.split("/")[-1]

    def test_upload_unknown_user(self, db_session):
        with pytest.raises(HTTPException) as exc:
            Documents.upload(
                db_session, PDF, str(uuid.uuid4()), "ID", "a.pdf", "application/pdf"
            )
        assert exc.value.status_code == 404

    def test_upload_disallowed_type(self, db_session, user):
        with pytest.raises(HTTPException) as exc:
            _upload(db_session, user, content_type="application/x-msdownload")
        assert exc.value.status_code == 400

    def test_upload_empty_file(self, db_session, user):
        with pytest.raises(HTTPException) as exc:
            _upload(db_session, user, content=b"")
        assert exc.value.status_code == 400

    def test_upload_missing_document_type(self, db_session, user):
        with pytest.raises(HTTPException) as exc:
            _upload(db_session, user, document_type=" ")
        assert exc.value.status_code == 400

    def test_upload_document_type_too_long(self, db_session, user):
        with pytest.raises(HTTPException) as exc:
            _upload(db_session, user, document_type="x" * 121)
        assert exc.value.status_code == 400
        assert "Document type too long" in exc.value.detail

    def test_upload_original_name_too_long(self, db_session, user):
        with patch.object(LocalStore, "save") as save:
            with pytest.raises(HTTPException) as exc:
                _upload(db_session, user, original_name="a" * 497 + ".pdf")
        assert exc.value.status_code == 400
        assert "File name too long" in exc.value.detail
        save.assert_not_called()

    def test_upload_long_name_within_limit(self, db_session, user):
        name = "a" * 496 + ".pdf"
        document = _upload(db_session, user, original_name=name)
        assert document.original_name == name
        assert len(document.filename.encode()) <= 255
        assert document.filename.endswith(".pdf")

    def test_detect_file_type(self):
        assert detect_file_type("image/png").value == "image"
        assert detect_file_type("video/mp4").value == "video"
        assert detect_file_type("application/pdf").value == "pdf"
        assert detect_file_type(None).value == "other"

    @pytest.mark.asyncio
    async def test_notify_uploaded_records_notification(self, db_session, user):
        document = _upload(db_session, user)
        with patch.object(
            documents_module.dispatcher,
            "notify_document_uploaded",
            new_callable=AsyncMock,
        ) as notify:
            await Documents.notify_uploaded(db_session, document)
        notify.assert_awaited_once()
        notification = db_session.scalar(select(Notification))
        assert notification.type == NotificationType.upload_success

    @pytest.mark.asyncio
    async def test_notify_uploaded_swallows_email_errors(self, db_session, user):
        document = _upload(db_session, user)
        with patch.object(
            documents_module.dispatcher,
            "notify_document_uploaded",
            new_callable=AsyncMock,
            side_effect=RuntimeError("smtp down"),
        ):
            await Documents.notify_uploaded(db_session, document)
        assert db_session.scalar(select(Notification)) is not None

    @pytest.mark.asyncio
    async def test_notify_uploaded_runs_session_work_off_the_loop(self, db_session, user):
        document = _upload(db_session, user)
        seen = []
        original = Documents.record_upload_notification
        with patch.object(
            Documents,
            "record_upload_notification",
            side_effect=_loop_recorder(original, seen),
        ), patch.object(
            documents_module.dispatcher,
            "notify_document_uploaded",
            new_callable=AsyncMock,
        ):
            await Documents.notify_uploaded(db_session, document)
        assert seen == [False]


class TestDocumentsList:
    def test_list_filters(self, db_session, user, admin, make_document):
        make_document(user, "ID", original_name="passport.pdf")
        make_document(user, "Tax", DocumentStatus.processed, original_name="return.pdf")
        make_document(admin, "ID")

        assert len(Documents.list(db_session, user_id=str(user.id))) == 2
        assert len(Documents.list(db_session, user_id=str(user.id), search="PASS")) == 1
        assert len(Documents.list(db_session, document_type="ID")) == 2
        assert len(Documents.list(db_session, status="processed")) == 1
        assert len(Documents.list(db_session, status="all")) == 3
        assert len(Documents.list(db_session, limit=2)) == 2

    def test_list_by_upload_day(self, db_session, user, make_document):
        today = datetime.now(timezone.utc)
        make_document(user, uploaded_at=today)
        make_document(user, uploaded_at=today - timedelta(days=3))
        assert len(Documents.list(db_session, uploaded_on=today.date())) == 1

    def test_list_newest_first(self, db_session, user, make_document):
        now = datetime.now(timezone.utc)
        old = make_document(user, uploaded_at=now - timedelta(days=2))
        new = make_document(user, uploaded_at=now)
        assert [d.id for d in Documents.list(db_session)] == [new.id, old.id]

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(HTTPException) as exc:
            Documents.list(db_session, status="archived")
        assert exc.value.status_code == 400

    def test_type_stats(self, db_session, user, make_document):
        make_document(user, "ID")
        make_document(user, "ID")
        make_document(user, "Tax")
        assert Documents.type_stats(db_session)[0] == {"name": "ID", "count": 2}


class TestDocumentsStatus:
    def test_processed_sets_timestamp_and_notifies(self, db_session, user, make_document):
        document = make_document(user)
        updated = Documents.update_status(db_session, str(document.id), "processed")
        assert updated.status == DocumentStatus.processed
        assert updated.processed_at is not None
        notification = db_session.scalar(select(Notification))
        assert notification.type == NotificationType.status_change

    def test_reject_clears_timestamp(self, db_session, user, make_document):
        document = make_document(user, status=DocumentStatus.processed)
        updated = Documents.update_status(db_session, str(document.id), "rejected")
        assert updated.processed_at is None

    def test_invalid_status(self, db_session, user, make_document):
        document = make_document(user)
        with pytest.raises(HTTPException) as exc:
            Documents.update_status(db_session, str(document.id), "done")
        assert exc.value.status_code == 400

    def test_missing_document(self, db_session):
        with pytest.raises(HTTPException) as exc:
            Documents.update_status(db_session, str(uuid.uuid4()), "processed")
        assert exc.value.status_code == 404


class TestDocumentsDelete:
    def test_delete_removes_row_and_blob(self, db_session, user):
        document = _upload(db_session, user)
        _, relative = parse_locator(document.storage_url)
        path = LocalStore.resolve(relative)
        assert path.exists()

        Documents.delete(db_session, str(document.id))
        assert not path.exists()
        assert Documents.get(db_session, str(document.id)) is None

    def test_delete_twice_reports_not_found(self, db_session, user):
        document = _upload(db_session, user)
        Documents.delete(db_session, str(document.id))
        with pytest.raises(HTTPException) as exc:
            Documents.delete(db_session, str(document.id))
        assert exc.value.status_code == 404

    def test_public_url(self, db_session, user):
        document = _upload(db_session, user)
        _, relative = parse_locator(document.storage_url)
        assert Documents.public_url(db_session, str(document.id)) == f"/uploads/{relative}"
