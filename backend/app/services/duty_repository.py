from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from app.core.exceptions import PersistenceUnavailable, ResourceNotFoundError
from app.models.duty_assignment import DutyAssignment, DutyStatus
from app.services.assignment_locks import AssignmentLocks, assignment_locks

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (OperationalError, PoolTimeoutError)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_text(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def load_assignment(db: Session, assignment_id: str, *, for_update: bool = False) -> DutyAssignment:
    query = select(DutyAssignment).where(DutyAssignment.id == assignment_id)
    if for_update:
        query = query.with_for_update(of=DutyAssignment).execution_options(populate_existing=True)
    try:
        assignment = db.execute(query).scalars().first()
    except STORAGE_ERRORS as exc:
        db.rollback()
        raise PersistenceUnavailable() from exc
    if assignment is None:
        raise ResourceNotFoundError("Duty assignment", assignment_id)
    return assignment


def list_assignments(
    db: Session,
    *,
    faculty_id: str | None = None,
    campus: str | None = None,
    department: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    include_cancelled: bool = False,
) -> list[DutyAssignment]:
    query = select(DutyAssignment)
    if faculty_id:
        query = query.where(DutyAssignment.faculty_id == faculty_id)
    if campus:
        query = query.where(DutyAssignment.campus == campus)
    if department:
        query = query.where(DutyAssignment.department == department)
    if date_from is not None:
        query = query.where(DutyAssignment.duty_date >= date_from)
    if date_to is not None:
        query = query.where(DutyAssignment.duty_date <= date_to)
    if not include_cancelled:
        query = query.where(DutyAssignment.status != DutyStatus.cancelled)
    query = query.order_by(DutyAssignment.duty_date, DutyAssignment.start_time, DutyAssignment.id)
    try:
        return list(db.execute(query).scalars())
    except STORAGE_ERRORS as exc:
        db.rollback()
        raise PersistenceUnavailable() from exc


def commit(db: Session) -> None:
    try:
        db.commit()
    except STORAGE_ERRORS as exc:
        db.rollback()
        raise PersistenceUnavailable() from exc


@contextmanager
def locked_assignment(
    db: Session,
    assignment_id: str,
    *,
    locks: AssignmentLocks | None = None,
) -> Iterator[DutyAssignment]:
    """Load a duty for mutation while holding its per-assignment lock.

    Anything the body leaves uncommitted is rolled back when it raises.
    """
    registry = locks or assignment_locks
    with registry.hold(assignment_id):
        assignment = load_assignment(db, assignment_id, for_update=True)
        try:
            yield assignment
        except STORAGE_ERRORS as exc:
            db.rollback()
            logger.warning("Storage failure while updating duty", extra={"assignment_id": assignment_id})
            raise PersistenceUnavailable() from exc
        except Exception:
            db.rollback()
            raise
