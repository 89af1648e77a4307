from __future__ import annotations

import logging
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from docflow.models.portal import Deadline, Notification, NotificationType, User
from docflow.schemas.deadlines import DeadlineCreate, DeadlineUpdate
from docflow.services import compliance
from docflow.services.common import coerce_uuid
from docflow.services.email import EmailDeliveryError, dispatcher
from docflow.services.response import ListResponseMixin
from docflow.services.users import applicable_deadlines

logger = logging.getLogger(__name__)

UPCOMING_HORIZON = timedelta(days=30)
UPCOMING_LIMIT = 5


def _check_scope(db: Session, user_id, is_global: bool) -> None:
    if is_global:
        if user_id is not None:
            raise HTTPException(
                status_code=400, detail="A global deadline cannot target a user"
            )
        return
    if user_id is None:
        raise HTTPException(
            status_code=400, detail="A non-global deadline requires a user_id"
        )
    if not db.get(User, coerce_uuid(user_id)):
        raise HTTPException(status_code=404, detail="User not found")


def with_urgency(deadline: Deadline, now: datetime) -> dict:
    return {
        "id": deadline.id,
        "user_id": deadline.user_id,
        "document_type": deadline.document_type,
        "title": deadline.title,
        "description": deadline.description,
        "due_date": deadline.due_date,
        "is_global": deadline.is_global,
        "created_by": deadline.created_by,
        "created_at": deadline.created_at,
        "days_left": compliance.days_left(deadline.due_date, now),
        "urgency": compliance.classify_urgency(deadline.due_date, now),
    }


class Deadlines(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: DeadlineCreate) -> Deadline:
        _check_scope(db, payload.user_id, payload.is_global)
        if payload.created_by and not db.get(User, coerce_uuid(payload.created_by)):
            raise HTTPException(status_code=404, detail="Creator not found")
        deadline = Deadline(**payload.model_dump())
        db.add(deadline)
        db.commit()
        db.refresh(deadline)
        logger.info("Created deadline %s", deadline.id)
        return deadline

    @staticmethod
    def get(db: Session, deadline_id: str) -> Deadline | None:
        return db.get(Deadline, coerce_uuid(deadline_id))

    @staticmethod
    def list(db: Session, limit: int | None = None) -> list[Deadline]:  # type: ignore[override]
        stmt = select(Deadline).order_by(Deadline.due_date.asc())
        if limit:
            stmt = stmt.limit(limit)
        return list(db.scalars(stmt).all())

    @staticmethod
    def list_for_user(db: Session, user_id: str) -> list[Deadline]:
        return applicable_deadlines(db, coerce_uuid(user_id))

    @staticmethod
    def upcoming(db: Session, user_id: str, now: datetime | None = None) -> list[Deadline]:
        now = compliance.as_utc(now or compliance.utcnow())
        horizon = now + UPCOMING_HORIZON
        items = [
            d
            for d in applicable_deadlines(db, coerce_uuid(user_id))
            if now <= compliance.as_utc(d.due_date) <= horizon
        ]
        return items[:UPCOMING_LIMIT]

    @staticmethod
    def update(db: Session, deadline_id: str, payload: DeadlineUpdate) -> Deadline:
        deadline = db.get(Deadline, coerce_uuid(deadline_id))
        if not deadline:
            raise HTTPException(status_code=404, detail="Deadline not found")
        data = payload.model_dump(exclude_unset=True)
        for required in ("document_type", "title", "due_date", "is_global"):
            if required in data and data[required] is None:
                data.pop(required)
        is_global = data.get("is_global", deadline.is_global)
        user_id = data["user_id"] if "user_id" in data else deadline.user_id
        if is_global and "is_global" in data and "user_id" not in data:
            user_id = None
            data["user_id"] = None
        _check_scope(db, user_id, is_global)

        for key, value in data.items():
            setattr(deadline, key, value)
        db.commit()
        db.refresh(deadline)
        logger.info("Updated deadline %s", deadline.id)
        return deadline

    @staticmethod
    def delete(db: Session, deadline_id: str) -> None:
        deadline = db.get(Deadline, coerce_uuid(deadline_id))
        if not deadline:
            raise HTTPException(status_code=404, detail="Deadline not found")
        db.delete(deadline)
        db.commit()
        logger.info("Deleted deadline %s", deadline_id)

    @staticmethod
    def recipients(db: Session, deadline: Deadline) -> list[User]:
        if deadline.is_global:
            return list(db.scalars(select(User).order_by(User.email.asc())))
        user = db.get(User, deadline.user_id) if deadline.user_id else None
        return [user] if user else []

    @staticmethod
    def load_for_notify(db: Session, deadline_id: str) -> tuple[Deadline, list[User]]:
        deadline = db.get(Deadline, coerce_uuid(deadline_id))
        if not deadline:
            raise HTTPException(status_code=404, detail="Deadline not found")
        return deadline, Deadlines.recipients(db, deadline)

    @staticmethod
    def record_notified(
        db: Session,
        deadline: Deadline,
        recipients: list[User],
        emails_sent: int,
        failures: int,
    ) -> dict:
        due = compliance.as_utc(deadline.due_date)
        for user in recipients:
            db.add(
                Notification(
                    user_id=user.id,
                    type=NotificationType.deadline,
                    title=f"Deadline approaching: {deadline.title}",
                    message=f"{deadline.document_type} is due on {due:%Y-%m-%d}.",
                )
            )
        db.commit()
        logger.info(
            "Notified %d users about deadline %s (%d emails, %d failures)",
            len(recipients),
            deadline.id,
            emails_sent,
            failures,
        )
        return {
            "recipients": len(recipients),
            "emails_sent": emails_sent,
            "notifications_created": len(recipients),
        }

    @staticmethod
    async def notify(db: Session, deadline_id: str) -> dict:
        """Email and notify everyone the deadline applies to.

        Session reads and the final commit run in the threadpool; only the
        SMTP hand-off is awaited on the event loop.
        """
        deadline, recipients = await run_in_threadpool(
            Deadlines.load_for_notify, db, deadline_id
        )
        emails_sent = 0
        failures = 0
        for user in recipients:
            try:
                if await dispatcher.notify_deadline_approaching(user, deadline):
                    emails_sent += 1
            except EmailDeliveryError as e:
                failures += 1
                logger.error("Deadline email to %s failed: %s", user.email, e)
        return await run_in_threadpool(
            Deadlines.record_notified, db, deadline, recipients, emails_sent, failures
        )


deadlines = Deadlines()
