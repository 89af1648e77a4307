import csv
import io

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from docflow.db import get_db
from docflow.models.portal import Deadline, Document, User
from docflow.schemas.common import ListResponse
from docflow.schemas.deadlines import DeadlineWithUrgency
from docflow.schemas.documents import DocumentWithOwner
from docflow.schemas.reminders import (
    ReminderCreate,
    ReminderRead,
    ReminderSendResponse,
    ReminderUpdate,
)
from docflow.schemas.stats import (
    AdminStats,
    DepartmentCompliance,
    DocumentTypeCount,
    UserWithStatus,
)
from docflow.schemas.users import UserCreate, UserRead, UserUpdate
from docflow.services import compliance
from docflow.services.deadlines import deadlines, with_urgency
from docflow.services.documents import documents as doc_service
from docflow.services.reminders import reminders
from docflow.services.users import users

router = APIRouter(prefix="/api/admin", tags=["admin"])

REPORT_COLUMNS = [
    "email",
    "first_name",
    "last_name",
    "department",
    "documents_count",
    "documents_processed",
    "documents_required",
    "compliance",
    "status",
]


def _snapshot(db: Session) -> tuple[list[User], list[Document], list[Deadline]]:
    return (
        list(db.scalars(select(User))),
        list(db.scalars(select(Document))),
        list(db.scalars(select(Deadline))),
    )


# ------------------------------------------------------------------
# Dashboards
# ------------------------------------------------------------------


@router.get("/stats", response_model=AdminStats)
def admin_stats(db: Session = Depends(get_db)):
    all_users, all_documents, all_deadlines = _snapshot(db)
    return compliance.admin_stats(
        all_users, all_documents, all_deadlines, compliance.utcnow()
    )


@router.get("/compliance-by-department", response_model=list[DepartmentCompliance])
def compliance_by_department(db: Session = Depends(get_db)):
    all_users, all_documents, _ = _snapshot(db)
    return compliance.department_compliance(all_users, all_documents)


@router.get(
    "/compliance-by-department/{department}", response_model=DepartmentCompliance
)
def department_compliance(department: str, db: Session = Depends(get_db)):
    all_users, all_documents, _ = _snapshot(db)
    members = [u for u in all_users if u.department == department]
    if not members:
        raise HTTPException(status_code=404, detail="Department not found")
    return compliance.department_compliance(members, all_documents)[0]


@router.get("/document-types", response_model=list[DocumentTypeCount])
def document_types(db: Session = Depends(get_db)):
    return doc_service.type_stats(db)


@router.get("/users-status", response_model=list[UserWithStatus])
def users_status(db: Session = Depends(get_db)):
    all_users, all_documents, all_deadlines = _snapshot(db)
    return [
        compliance.user_status(user, all_documents, all_deadlines)
        for user in users.list(db)
    ]


@router.get("/export/compliance-report")
def export_compliance_report(db: Session = Depends(get_db)):
    all_users, all_documents, all_deadlines = _snapshot(db)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=REPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(
        compliance.compliance_report_rows(all_users, all_documents, all_deadlines)
    )
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="compliance-report.csv"'},
    )


# ------------------------------------------------------------------
# Users
# ------------------------------------------------------------------


@router.get("/users", response_model=ListResponse[UserRead])
def list_users(
    search: str | None = None,
    department: str | None = None,
    db: Session = Depends(get_db),
):
    return users.list_response(db, search=search, department=department)


@router.get("/departments", response_model=list[str])
def list_departments(db: Session = Depends(get_db)):
    return users.departments(db)


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    return users.create(db, payload)


@router.patch("/users/{user_id}", response_model=UserRead)
def update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db)):
    return users.update(db, user_id, payload)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, db: Session = Depends(get_db)):
    users.delete(db, user_id)


# ------------------------------------------------------------------
# Documents and deadlines
# ------------------------------------------------------------------


@router.get("/documents", response_model=ListResponse[DocumentWithOwner])
def list_documents(
    search: str | None = None,
    document_type: str | None = Query(default=None, alias="type"),
    status_filter: str | None = Query(default=None, alias="status"),
    user_id: str | None = Query(default=None, alias="userId"),
    db: Session = Depends(get_db),
):
    return doc_service.list_response(
        db,
        user_id=user_id,
        search=search,
        document_type=document_type,
        status=status_filter,
    )


@router.get("/deadlines", response_model=ListResponse[DeadlineWithUrgency])
def list_deadlines(db: Session = Depends(get_db)):
    now = compliance.utcnow()
    items = [with_urgency(d, now) for d in deadlines.list(db)]
    return {"items": items, "count": len(items)}


@router.post("/deadlines/{deadline_id}/notify")
async def notify_deadline(deadline_id: str, db: Session = Depends(get_db)):
    return await deadlines.notify(db, deadline_id)


# ------------------------------------------------------------------
# Reminders
# ------------------------------------------------------------------


@router.get("/reminders", response_model=ListResponse[ReminderRead])
def list_reminders(db: Session = Depends(get_db)):
    return reminders.list_response(db)


@router.post(
    "/reminders", response_model=ReminderRead, status_code=status.HTTP_201_CREATED
)
def create_reminder(payload: ReminderCreate, db: Session = Depends(get_db)):
    return reminders.create(db, payload)


@router.get("/reminders/{reminder_id}", response_model=ReminderRead)
def get_reminder(reminder_id: str, db: Session = Depends(get_db)):
    reminder = reminders.get(db, reminder_id)
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


@router.patch("/reminders/{reminder_id}", response_model=ReminderRead)
def update_reminder(
    reminder_id: str, payload: ReminderUpdate, db: Session = Depends(get_db)
):
    return reminders.update(db, reminder_id, payload)


@router.delete("/reminders/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(reminder_id: str, db: Session = Depends(get_db)):
    reminders.delete(db, reminder_id)


@router.post("/reminders/{reminder_id}/send", response_model=ReminderSendResponse)
async def send_reminder(reminder_id: str, db: Session = Depends(get_db)):
    return await reminders.send(db, reminder_id)
