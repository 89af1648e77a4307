"""Compliance aggregation and deadline urgency.

Everything here is a pure function of the rows passed in and the caller's
notion of "now". Nothing is cached: dashboards re-derive these figures from a
fresh row snapshot on every request.

Compliance is ``processed / total`` documents, expressed as an integer
percentage rounded half up, and is 0 when there are no documents.

Urgency is derived from ``ceil((due - now) / 1 day)``. A deadline whose due
moment has already passed is overdue even if the ceiling is 0, so a deadline
due one millisecond ago is overdue while one due exactly now is due today.
"""

from __future__ import annotations

import enum
import math
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from docflow.models.portal import Deadline, Document, DocumentStatus, User

DAY = timedelta(days=1)
UPCOMING_WINDOW = timedelta(days=7)
NEW_DOCUMENTS_WINDOW = timedelta(days=7)
COMPLIANCE_CHANGE_WINDOW = timedelta(days=30)


class UrgencyBucket(enum.Enum):
    overdue = "overdue"
    today = "today"
    tomorrow = "tomorrow"
    urgent = "urgent"
    soon = "soon"
    future = "future"


URGENCY_ORDER = list(UrgencyBucket)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are stored and compared as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _percentage(part: int, total: int) -> int:
    if total <= 0:
        return 0
    # round half up in integer arithmetic
    return (200 * part + total) // (2 * total)


def _is_processed(document: Document) -> bool:
    return document.status == DocumentStatus.processed


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------


def compliance_percentage(documents: Iterable[Document]) -> int:
    total = 0
    processed = 0
    for document in documents:
        total += 1
        if _is_processed(document):
            processed += 1
    return _percentage(processed, total)


def user_compliance(user_id: uuid.UUID, documents: Iterable[Document]) -> int:
    return compliance_percentage(d for d in documents if d.user_id == user_id)


def department_compliance(
    users: Sequence[User], documents: Sequence[Document]
) -> list[dict]:
    """Per-department compliance, weighted by document count."""
    department_by_user = {user.id: user.department for user in users}
    user_counts = Counter(user.department for user in users)
    totals: Counter = Counter()
    processed: Counter = Counter()
    for document in documents:
        department = department_by_user.get(document.user_id)
        if department is None:
            continue
        totals[department] += 1
        if _is_processed(document):
            processed[department] += 1
    return [
        {
            "name": department,
            "percentage": _percentage(processed[department], totals[department]),
            "total_users": user_counts[department],
            "total_documents": totals[department],
        }
        for department in sorted(user_counts)
    ]


def compliance_as_of(documents: Iterable[Document], moment: datetime) -> int:
    """Compliance as it stood at ``moment``, rebuilt from upload/processing times."""
    moment = as_utc(moment)
    total = 0
    processed = 0
    for document in documents:
        if document.uploaded_at is None or as_utc(document.uploaded_at) > moment:
            continue
        total += 1
        if (
            document.processed_at is not None
            and as_utc(document.processed_at) <= moment
        ):
            processed += 1
    return _percentage(processed, total)


# ---------------------------------------------------------------------------
# Urgency
# ---------------------------------------------------------------------------


def days_left(due_date: datetime, now: datetime) -> int:
    delta = as_utc(due_date) - as_utc(now)
    return math.ceil(delta / DAY)


def classify_urgency(due_date: datetime, now: datetime) -> UrgencyBucket:
    if as_utc(due_date) < as_utc(now):
        return UrgencyBucket.overdue
    remaining = days_left(due_date, now)
    if remaining == 0:
        return UrgencyBucket.today
    if remaining == 1:
        return UrgencyBucket.tomorrow
    if remaining <= 5:
        return UrgencyBucket.urgent
    if remaining <= 15:
        return UrgencyBucket.soon
    return UrgencyBucket.future


def group_by_urgency(
    deadlines: Iterable[Deadline], now: datetime
) -> dict[UrgencyBucket, list[Deadline]]:
    """Buckets in display order; empty buckets are omitted."""
    grouped: dict[UrgencyBucket, list[Deadline]] = {}
    for deadline in sorted(deadlines, key=lambda d: as_utc(d.due_date)):
        grouped.setdefault(classify_urgency(deadline.due_date, now), []).append(
            deadline
        )
    return {bucket: grouped[bucket] for bucket in URGENCY_ORDER if bucket in grouped}


def applies_to(deadline: Deadline, user_id: uuid.UUID) -> bool:
    return bool(deadline.is_global) or deadline.user_id == user_id


# ---------------------------------------------------------------------------
# Dashboards
# ---------------------------------------------------------------------------


def user_stats(
    documents: Sequence[Document], deadlines: Sequence[Deadline], now: datetime
) -> dict:
    now = as_utc(now)
    horizon = now + UPCOMING_WINDOW
    upcoming = sum(1 for d in deadlines if now <= as_utc(d.due_date) <= horizon)
    return {
        "total": len(documents),
        "uploaded": sum(1 for d in documents if _is_processed(d)),
        "pending": sum(1 for d in documents if d.status == DocumentStatus.pending),
        "rejected": sum(1 for d in documents if d.status == DocumentStatus.rejected),
        "upcoming": upcoming,
        "compliance": compliance_percentage(documents),
    }


def user_status(
    user: User, documents: Sequence[Document], deadlines: Sequence[Deadline]
) -> dict:
    own_documents = [d for d in documents if d.user_id == user.id]
    required_types = {d.document_type for d in deadlines if applies_to(d, user.id)}
    processed_types = {d.document_type for d in own_documents if _is_processed(d)}
    processed_count = sum(1 for d in own_documents if _is_processed(d))

    if required_types:
        if required_types <= processed_types:
            status = "complete"
        elif processed_count:
            status = "incomplete"
        else:
            status = "pending"
    else:
        status = "complete" if processed_count else "pending"

    last_activity = max(
        (as_utc(d.uploaded_at) for d in own_documents if d.uploaded_at), default=None
    )
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "department": user.department,
        "role": user.role,
        "documents_uploaded": processed_count,
        "documents_required": len(required_types),
        "documents_count": len(own_documents),
        "compliance": compliance_percentage(own_documents),
        "status": status,
        "last_activity": last_activity,
    }


def overdue_count(
    users: Sequence[User],
    documents: Sequence[Document],
    deadlines: Sequence[Deadline],
    now: datetime,
) -> int:
    """Past-due (user, deadline) pairs with no processed document of that type."""
    now = as_utc(now)
    processed_types: dict[uuid.UUID, set[str]] = {}
    for document in documents:
        if _is_processed(document):
            processed_types.setdefault(document.user_id, set()).add(
                document.document_type
            )
    past_due = [d for d in deadlines if as_utc(d.due_date) < now]
    count = 0
    for user in users:
        satisfied = processed_types.get(user.id, set())
        for deadline in past_due:
            if applies_to(deadline, user.id) and deadline.document_type not in satisfied:
                count += 1
    return count


def admin_stats(
    users: Sequence[User],
    documents: Sequence[Document],
    deadlines: Sequence[Deadline],
    now: datetime,
) -> dict:
    now = as_utc(now)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    week_start = now - NEW_DOCUMENTS_WINDOW
    compliance = compliance_percentage(documents)
    previous = compliance_as_of(documents, now - COMPLIANCE_CHANGE_WINDOW)
    return {
        "total_users": len(users),
        "new_users_this_month": sum(
            1 for u in users if u.created_at and as_utc(u.created_at) >= month_start
        ),
        "total_documents": len(documents),
        "new_documents_this_week": sum(
            1
            for d in documents
            if d.uploaded_at and as_utc(d.uploaded_at) >= week_start
        ),
        "pending_documents": sum(
            1 for d in documents if d.status == DocumentStatus.pending
        ),
        "total_deadlines": len(deadlines),
        "compliance": compliance,
        "compliance_change": compliance - previous,
        "overdue": overdue_count(users, documents, deadlines, now),
    }


def document_type_stats(documents: Iterable[Document]) -> list[dict]:
    counts = Counter(d.document_type for d in documents)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [{"name": name, "count": count} for name, count in ordered]


def compliance_report_rows(
    users: Sequence[User],
    documents: Sequence[Document],
    deadlines: Sequence[Deadline],
) -> list[dict]:
    rows = []
    for user in sorted(users, key=lambda u: (u.department, u.last_name, u.first_name)):
        status = user_status(user, documents, deadlines)
        rows.append(
            {
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "department": user.department,
                "documents_count": status["documents_count"],
                "documents_processed": status["documents_uploaded"],
                "documents_required": status["documents_required"],
                "compliance": status["compliance"],
                "status": status["status"],
            }
        )
    return rows
