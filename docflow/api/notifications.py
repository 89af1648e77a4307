from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from docflow.db import get_db
from docflow.schemas.common import ListResponse
from docflow.schemas.notifications import (
    MarkAllReadResponse,
    NotificationCreate,
    NotificationRead,
    UnreadCountResponse,
)
from docflow.services.notifications import notifications

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.post("", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
def create_notification(payload: NotificationCreate, db: Session = Depends(get_db)):
    return notifications.create(db, payload)


@router.get("/user/{user_id}", response_model=ListResponse[NotificationRead])
def list_notifications(
    user_id: str,
    is_read: bool | None = None,
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return notifications.list_response(db, user_id=user_id, is_read=is_read, limit=limit)


@router.get("/user/{user_id}/unread-count", response_model=UnreadCountResponse)
def unread_count(user_id: str, db: Session = Depends(get_db)):
    return {"count": notifications.unread_count(db, user_id)}


@router.post("/user/{user_id}/read-all", response_model=MarkAllReadResponse)
def mark_all_read(user_id: str, db: Session = Depends(get_db)):
    return {"marked": notifications.mark_all_read(db, user_id)}


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(notification_id: str, db: Session = Depends(get_db)):
    notification = notifications.get(db, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(notification_id: str, db: Session = Depends(get_db)):
    return notifications.mark_read(db, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(notification_id: str, db: Session = Depends(get_db)):
    notifications.delete(db, notification_id)
