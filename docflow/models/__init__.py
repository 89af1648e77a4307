from docflow.models.portal import (  # noqa: F401
    Deadline,
    Document,
    DocumentStatus,
    FileType,
    Notification,
    NotificationType,
    Reminder,
    User,
    UserRole,
)
