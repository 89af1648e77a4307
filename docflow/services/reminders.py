from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from docflow.models.portal import Deadline, Notification, NotificationType, Reminder, User
from docflow.schemas.reminders import ReminderCreate, ReminderUpdate
from docflow.services.common import coerce_uuid
from docflow.services.compliance import as_utc, utcnow
from docflow.services.deadlines import Deadlines
from docflow.services.email import EmailDeliveryError, dispatcher
from docflow.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _check_refs(db: Session, deadline_id, user_id) -> None:
    if deadline_id is not None and not db.get(Deadline, coerce_uuid(deadline_id)):
        raise HTTPException(status_code=404, detail="Deadline not found")
    if user_id is not None and not db.get(User, coerce_uuid(user_id)):
        raise HTTPException(status_code=404, detail="User not found")


class Reminders(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ReminderCreate) -> Reminder:
        _check_refs(db, payload.deadline_id, payload.user_id)
        reminder = Reminder(**payload.model_dump())
        db.add(reminder)
        db.commit()
        db.refresh(reminder)
        logger.info("Created reminder %s for deadline %s", reminder.id, reminder.deadline_id)
        return reminder

    @staticmethod
    def get(db: Session, reminder_id: str) -> Reminder | None:
        return db.get(Reminder, coerce_uuid(reminder_id))

    @staticmethod
    def list(db: Session, limit: int | None = None) -> list[Reminder]:  # type: ignore[override]
        stmt = select(Reminder).order_by(Reminder.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list(db.scalars(stmt).all())

    @staticmethod
    def update(db: Session, reminder_id: str, payload: ReminderUpdate) -> Reminder:
        reminder = db.get(Reminder, coerce_uuid(reminder_id))
        if not reminder:
            raise HTTPException(status_code=404, detail="Reminder not found")
        data = payload.model_dump(exclude_unset=True)
        for required in (
            "deadline_id",
            "reminder_time",
            "send_email",
            "send_sms",
            "send_push",
            "is_sent",
        ):
            if required in data and data[required] is None:
                data.pop(required)
        _check_refs(db, data.get("deadline_id"), data.get("user_id"))
        for key, value in data.items():
            setattr(reminder, key, value)
        db.commit()
        db.refresh(reminder)
        logger.info("Updated reminder %s", reminder.id)
        return reminder

    @staticmethod
    def delete(db: Session, reminder_id: str) -> None:
        reminder = db.get(Reminder, coerce_uuid(reminder_id))
        if not reminder:
            raise HTTPException(status_code=404, detail="Reminder not found")
        db.delete(reminder)
        db.commit()
        logger.info("Deleted reminder %s", reminder_id)

    @staticmethod
    def recipients(db: Session, reminder: Reminder, deadline: Deadline) -> list[User]:
        if reminder.user_id is not None:
            user = db.get(User, reminder.user_id)
            return [user] if user else []
        return Deadlines.recipients(db, deadline)

    @staticmethod
    def load_for_send(db: Session, reminder_id: str) -> tuple[Reminder, Deadline, list[User]]:
        reminder = db.get(Reminder, coerce_uuid(reminder_id))
        if not reminder:
            raise HTTPException(status_code=404, detail="Reminder not found")
        deadline = db.get(Deadline, reminder.deadline_id)
        if not deadline:
            raise HTTPException(status_code=404, detail="Associated deadline not found")
        return reminder, deadline, Reminders.recipients(db, reminder, deadline)

    @staticmethod
    def mark_sent(
        db: Session,
        reminder: Reminder,
        deadline: Deadline,
        recipients: list[User],
        emails_sent: int,
    ) -> dict:
        if reminder.send_sms:
            logger.warning("SMS delivery is not supported; skipped for reminder %s", reminder.id)

        created = 0
        if reminder.send_push:
            due = as_utc(deadline.due_date)
            for user in recipients:
                db.add(
                    Notification(
                        user_id=user.id,
                        type=NotificationType.reminder,
                        title=f"Reminder: {deadline.title}",
                        message=(
                            f"Please upload your {deadline.document_type} "
                            f"before {due:%Y-%m-%d}."
                        ),
                    )
                )
                created += 1

        reminder.is_sent = True
        reminder.sent_at = utcnow()
        db.commit()
        logger.info(
            "Sent reminder %s to %d recipients (%d emails, %d notifications)",
            reminder.id,
            len(recipients),
            emails_sent,
            created,
        )
        return {
            "message": "Reminder sent successfully",
            "recipients": len(recipients),
            "emails_sent": emails_sent,
            "notifications_created": created,
        }

    @staticmethod
    async def send(db: Session, reminder_id: str) -> dict:
        """Fire a reminder now.

        Emails go out first; ``is_sent`` is only set once every enabled
        channel has been handed off. An SMTP failure leaves the reminder
        unsent and raises 502. Session work runs in the threadpool so a
        slow database never holds the event loop.
        """
        reminder, deadline, recipients = await run_in_threadpool(
            Reminders.load_for_send, db, reminder_id
        )
        emails_sent = 0
        if reminder.send_email:
            try:
                emails_sent = await dispatcher.notify_reminder_fired(
                    reminder, deadline, recipients
                )
            except EmailDeliveryError as e:
                logger.error("Reminder %s email delivery failed: %s", reminder.id, e)
                raise HTTPException(status_code=502, detail=str(e))
        return await run_in_threadpool(
            Reminders.mark_sent, db, reminder, deadline, recipients, emails_sent
        )


reminders = Reminders()
