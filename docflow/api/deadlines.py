from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from docflow.db import get_db
from docflow.schemas.common import ListResponse
from docflow.schemas.deadlines import (
    DeadlineCreate,
    DeadlineGroup,
    DeadlineRead,
    DeadlineUpdate,
    DeadlineWithUrgency,
)
from docflow.services import compliance
from docflow.services.deadlines import deadlines, with_urgency

router = APIRouter(prefix="/api/deadlines", tags=["deadlines"])


@router.post("", response_model=DeadlineRead, status_code=status.HTTP_201_CREATED)
def create_deadline(payload: DeadlineCreate, db: Session = Depends(get_db)):
    return deadlines.create(db, payload)


@router.get("/user/{user_id}", response_model=ListResponse[DeadlineWithUrgency])
def list_user_deadlines(user_id: str, db: Session = Depends(get_db)):
    now = compliance.utcnow()
    items = [with_urgency(d, now) for d in deadlines.list_for_user(db, user_id)]
    return {"items": items, "count": len(items)}


@router.get("/user/{user_id}/grouped", response_model=list[DeadlineGroup])
def group_user_deadlines(user_id: str, db: Session = Depends(get_db)):
    now = compliance.utcnow()
    grouped = compliance.group_by_urgency(deadlines.list_for_user(db, user_id), now)
    return [
        {"urgency": bucket, "items": [with_urgency(d, now) for d in items]}
        for bucket, items in grouped.items()
    ]


@router.get(
    "/user/{user_id}/upcoming", response_model=ListResponse[DeadlineWithUrgency]
)
def list_upcoming_deadlines(user_id: str, db: Session = Depends(get_db)):
    now = compliance.utcnow()
    items = [with_urgency(d, now) for d in deadlines.upcoming(db, user_id, now)]
    return {"items": items, "count": len(items)}


@router.get("/{deadline_id}", response_model=DeadlineWithUrgency)
def get_deadline(deadline_id: str, db: Session = Depends(get_db)):
    deadline = deadlines.get(db, deadline_id)
    if not deadline:
        raise HTTPException(status_code=404, detail="Deadline not found")
    return with_urgency(deadline, compliance.utcnow())


@router.patch("/{deadline_id}", response_model=DeadlineRead)
def update_deadline(
    deadline_id: str, payload: DeadlineUpdate, db: Session = Depends(get_db)
):
    return deadlines.update(db, deadline_id, payload)


@router.delete("/{deadline_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_deadline(deadline_id: str, db: Session = Depends(get_db)):
    deadlines.delete(db, deadline_id)
