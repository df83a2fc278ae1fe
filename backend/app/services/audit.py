from __future__ import annotations

from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.user import User


def log_activity(
    db: Session,
    *,
    user: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict | None = None,
) -> ActivityLog:
    record = ActivityLog(
        user_id=user.id if user is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(record)
    return record


def log_duty_activity(db: Session, *, user: User | None, assignment_id: str, action: str, **details) -> ActivityLog:
    return log_activity(
        db,
        user=user,
        action=f"duty.{action}",
        entity_type="duty_assignment",
        entity_id=assignment_id,
        details=details,
    )
