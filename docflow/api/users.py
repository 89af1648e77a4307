from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from docflow.db import get_db
from docflow.schemas.stats import ActivityItem, UserCompliance, UserStats
from docflow.schemas.users import UserCreate, UserRead
from docflow.services.users import users

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    return users.create(db, payload)


@router.get("/profile/{firebase_uid}", response_model=UserRead)
def get_profile(firebase_uid: str, db: Session = Depends(get_db)):
    user = users.get_by_firebase_uid(db, firebase_uid)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return users.require(db, user_id)


@router.get("/{user_id}/stats", response_model=UserStats)
def get_user_stats(user_id: str, db: Session = Depends(get_db)):
    users.require(db, user_id)
    return users.stats(db, user_id)


@router.get("/{user_id}/activity", response_model=list[ActivityItem])
def get_user_activity(
    user_id: str,
    limit: int = Query(default=5, ge=1, le=50),
    db: Session = Depends(get_db),
):
    return users.activity(db, user_id, limit)


@router.get("/{user_id}/compliance", response_model=UserCompliance)
def get_user_compliance(user_id: str, db: Session = Depends(get_db)):
    user = users.require(db, user_id)
    return {"user_id": user.id, "compliance": users.compliance(db, user_id)}
