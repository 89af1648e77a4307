import os
import tempfile
from datetime import datetime, timedelta, timezone

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="docflow-uploads-")
os.environ["LOG_FORMAT"] = "text"
os.environ["SEED_SAMPLE_DATA"] = "false"
for _name in ("S3_ENDPOINT_URL", "S3_ACCESS_KEY", "S3_SECRET_KEY", "S3_PUBLIC_URL"):
    os.environ[_name] = ""
for _name in ("SMTP_USER", "SMTP_PASSWORD"):
    os.environ[_name] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from docflow import models  # noqa: E402,F401
from docflow.db import Base, SessionLocal, engine, get_db  # noqa: E402
from docflow.main import app  # noqa: E402
from docflow.models.portal import (  # noqa: E402
    Deadline,
    Document,
    DocumentStatus,
    FileType,
    User,
    UserRole,
)


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def user(db_session):
    u = User(
        email="juan@example.com",
        first_name="Juan",
        last_name="Pérez",
        department="Human Resources",
        role=UserRole.user,
        firebase_uid="uid-juan",
    )
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)
    return u


@pytest.fixture()
def admin(db_session):
    u = User(
        email="admin@example.com",
        first_name="Ana",
        last_name="Admin",
        department="IT",
        role=UserRole.admin,
        firebase_uid="uid-admin",
    )
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)
    return u


@pytest.fixture()
def make_document(db_session):
    def _make(owner, document_type="ID", status=DocumentStatus.pending, **overrides):
        values = dict(
            user_id=owner.id,
            filename="1700000000000-file.pdf",
            original_name="file.pdf",
            file_type=FileType.pdf,
            document_type=document_type,
            file_size=1024,
            storage_url=f"local:{owner.id}/1700000000000-file.pdf",
            status=status,
        )
        values.update(overrides)
        if status == DocumentStatus.processed and "processed_at" not in overrides:
            values["processed_at"] = datetime.now(timezone.utc)
        document = Document(**values)
        db_session.add(document)
        db_session.commit()
        db_session.refresh(document)
        return document

    return _make


@pytest.fixture()
def make_deadline(db_session):
    def _make(owner=None, document_type="ID", days=10, **overrides):
        values = dict(
            user_id=owner.id if owner is not None else None,
            document_type=document_type,
            title=f"{document_type} deadline",
            due_date=datetime.now(timezone.utc) + timedelta(days=days),
            is_global=owner is None,
        )
        values.update(overrides)
        deadline = Deadline(**values)
        db_session.add(deadline)
        db_session.commit()
        db_session.refresh(deadline)
        return deadline

    return _make
