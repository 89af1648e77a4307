from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docflow.models.portal import Deadline, Document, User, UserRole
from docflow.schemas.users import UserCreate, UserUpdate
from docflow.services import compliance
from docflow.services.common import coerce_uuid, is_filter_set, validate_choice
from docflow.services.response import ListResponseMixin
from docflow.services.storage import StorageError, storage

logger = logging.getLogger(__name__)


def _ensure_unique(
    db: Session, email: str | None, firebase_uid: str | None, exclude_id=None
) -> None:
    if email:
        stmt = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if db.scalar(stmt) is not None:
            raise HTTPException(status_code=400, detail="Email already registered")
    if firebase_uid:
        stmt = select(User.id).where(User.firebase_uid == firebase_uid)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if db.scalar(stmt) is not None:
            raise HTTPException(
                status_code=400, detail="Firebase UID already registered"
            )


def _commit_unique(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=400, detail="Email or Firebase UID already registered"
        )


def applicable_deadlines(db: Session, user_id) -> list[Deadline]:
    stmt = (
        select(Deadline)
        .where(or_(Deadline.user_id == user_id, Deadline.is_global.is_(True)))
        .order_by(Deadline.due_date.asc())
    )
    return list(db.scalars(stmt).all())


class Users(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: UserCreate) -> User:
        data = payload.model_dump()
        data["role"] = validate_choice(data["role"], UserRole, "role")
        _ensure_unique(db, data["email"], data.get("firebase_uid"))
        user = User(**data)
        db.add(user)
        _commit_unique(db)
        db.refresh(user)
        logger.info("Created user %s", user.id)
        return user

    @staticmethod
    def get(db: Session, user_id: str) -> User | None:
        return db.get(User, coerce_uuid(user_id))

    @staticmethod
    def require(db: Session, user_id: str) -> User:
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @staticmethod
    def get_by_email(db: Session, email: str) -> User | None:
        return db.scalar(select(User).where(func.lower(User.email) == email.lower()))

    @staticmethod
    def get_by_firebase_uid(db: Session, firebase_uid: str) -> User | None:
        return db.scalar(select(User).where(User.firebase_uid == firebase_uid))

    @staticmethod
    def list(
        db: Session,
        search: str | None = None,
        department: str | None = None,
        limit: int | None = None,
    ) -> list[User]:  # type: ignore[override]
        stmt = select(User)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(User.first_name).like(pattern),
                    func.lower(User.last_name).like(pattern),
                    func.lower(User.email).like(pattern),
                )
            )
        if is_filter_set(department):
            stmt = stmt.where(User.department == department)
        stmt = stmt.order_by(User.first_name.asc(), User.last_name.asc())
        if limit:
            stmt = stmt.limit(limit)
        return list(db.scalars(stmt).all())

    @staticmethod
    def departments(db: Session) -> list[str]:
        stmt = select(User.department).distinct().order_by(User.department.asc())
        return list(db.scalars(stmt).all())

    @staticmethod
    def update(db: Session, user_id: str, payload: UserUpdate) -> User:
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        data = payload.model_dump(exclude_unset=True)
        if "role" in data:
            if data["role"] is None:
                data.pop("role")
            else:
                data["role"] = validate_choice(data["role"], UserRole, "role")
        for required in ("email", "first_name", "last_name", "department"):
            if required in data and data[required] is None:
                data.pop(required)
        _ensure_unique(
            db, data.get("email"), data.get("firebase_uid"), exclude_id=user.id
        )

        for key, value in data.items():
            setattr(user, key, value)
        _commit_unique(db)
        db.refresh(user)
        logger.info("Updated user %s", user.id)
        return user

    @staticmethod
    def delete(db: Session, user_id: str) -> None:
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        for document in user.documents:
            try:
                storage.delete(document.storage_url)
            except StorageError as e:
                logger.error(
                    "Could not remove file for document %s: %s", document.id, e
                )
        db.delete(user)
        db.commit()
        logger.info("Deleted user %s", user_id)

    @staticmethod
    def stats(db: Session, user_id: str) -> dict:
        uid = coerce_uuid(user_id)
        documents = list(db.scalars(select(Document).where(Document.user_id == uid)))
        deadlines = applicable_deadlines(db, uid)
        return compliance.user_stats(documents, deadlines, compliance.utcnow())

    @staticmethod
    def activity(db: Session, user_id: str, limit: int = 5) -> list[dict]:
        stmt = (
            select(Document)
            .where(Document.user_id == coerce_uuid(user_id))
            .order_by(Document.uploaded_at.desc())
            .limit(limit)
        )
        return [
            {
                "type": "upload",
                "title": f"{document.original_name} uploaded",
                "created_at": document.uploaded_at,
            }
            for document in db.scalars(stmt)
        ]

    @staticmethod
    def compliance(db: Session, user_id: str) -> int:
        uid = coerce_uuid(user_id)
        documents = db.scalars(select(Document).where(Document.user_id == uid))
        return compliance.user_compliance(uid, documents)


users = Users()
