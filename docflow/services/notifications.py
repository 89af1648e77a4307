from __future__ import annotations

import logging
from typing import List

from fastapi import HTTPException
from sqlalchemy.orm import Session

from docflow.models.portal import Notification, NotificationType, User
from docflow.schemas.notifications import NotificationCreate
from docflow.services.common import coerce_uuid, validate_choice
from docflow.services.compliance import utcnow
from docflow.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Notifications(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: NotificationCreate) -> Notification:
        if not db.get(User, coerce_uuid(payload.user_id)):
            raise HTTPException(status_code=404, detail="User not found")
        data = payload.model_dump()
        data["type"] = validate_choice(data["type"], NotificationType, "type")
        notification = Notification(**data)
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info("Created notification %s", notification.id)
        return notification

    @staticmethod
    def get(db: Session, notification_id: str) -> Notification | None:
        return db.get(Notification, coerce_uuid(notification_id))

    @staticmethod
    def list(
        db: Session,
        user_id: str,
        is_read: bool | None = None,
        limit: int | None = None,
    ) -> List[Notification]:
        query = db.query(Notification).filter(
            Notification.user_id == coerce_uuid(user_id)
        )
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        query = query.order_by(Notification.sent_at.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def mark_read(db: Session, notification_id: str) -> Notification:
        notification = db.get(Notification, coerce_uuid(notification_id))
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            db.commit()
            db.refresh(notification)
            logger.info("Marked notification %s as read", notification_id)
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: str) -> int:
        if not db.get(User, coerce_uuid(user_id)):
            raise HTTPException(status_code=404, detail="User not found")
        now = utcnow()
        unread = (
            db.query(Notification)
            .filter(
                Notification.user_id == coerce_uuid(user_id),
                Notification.is_read.is_(False),
            )
            .all()
        )
        for n in unread:
            n.is_read = True
            n.read_at = now
        db.commit()
        logger.info(
            "Marked all %d notifications as read for user %s", len(unread), user_id
        )
        return len(unread)

    @staticmethod
    def unread_count(db: Session, user_id: str) -> int:
        if not db.get(User, coerce_uuid(user_id)):
            raise HTTPException(status_code=404, detail="User not found")
        return (
            db.query(Notification)
            .filter(
                Notification.user_id == coerce_uuid(user_id),
                Notification.is_read.is_(False),
            )
            .count()
        )

    @staticmethod
    def delete(db: Session, notification_id: str) -> None:
        notification = db.get(Notification, coerce_uuid(notification_id))
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        db.delete(notification)
        db.commit()
        logger.info("Deleted notification %s", notification_id)


notifications = Notifications()
