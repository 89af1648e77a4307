import uuid

from fastapi import HTTPException


def coerce_uuid(value):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid identifier: {value}")


def validate_choice(value: str, enum_cls, label: str):
    allowed = {e.value for e in enum_cls}
    if value not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {label}. Allowed: {sorted(allowed)}",
        )
    return enum_cls(value)


def is_filter_set(value: str | None) -> bool:
    return value is not None and value != "" and value != "all"
