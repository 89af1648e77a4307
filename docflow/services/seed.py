import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from docflow.models.portal import User, UserRole

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    {
        "email": "admin@documentflow.com",
        "first_name": "Admin",
        "last_name": "User",
        "phone": "+52 55 1234 5678",
        "department": "IT",
        "role": UserRole.admin,
        "firebase_uid": "admin-firebase-uid",
    },
    {
        "email": "user@documentflow.com",
        "first_name": "Juan",
        "last_name": "Pérez",
        "phone": "+52 55 8765 4321",
        "department": "Human Resources",
        "role": UserRole.user,
        "firebase_uid": "user-firebase-uid",
    },
]


def seed_sample_users(db: Session) -> int:
    if db.scalar(select(User.id).limit(1)) is not None:
        return 0
    for data in SAMPLE_USERS:
        db.add(User(**data))
    db.commit()
    logger.info("Seeded %d sample users", len(SAMPLE_USERS))
    return len(SAMPLE_USERS)
