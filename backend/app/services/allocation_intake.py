from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import PermissionDenied, PersistenceUnavailable, ResourceNotFoundError
from app.models.acknowledgment import AcknowledgmentState, AcknowledgmentStatus
from app.models.classroom import Classroom
from app.models.duty_assignment import DutyAssignment, DutyStatus
from app.models.exam import Exam
from app.models.live_status import LiveStatus, LiveStatusValue
from app.models.reserved_faculty import ReservedFacultyEntry, ReservedFacultyStatus
from app.models.user import User, UserRole
from app.schemas.allocation import DutyAssignmentIn
from app.services.assignment_locks import AssignmentLocks
from app.services.audit import log_activity, log_duty_activity
from app.services.duty_access import MANAGER_ROLES, duty_summary
from app.services.duty_lifecycle import acknowledgment_deadline, exam_local_date, live_status_window
from app.services.duty_repository import STORAGE_ERRORS, as_utc, commit, locked_assignment, utc_now
from app.services.event_distributor import (
    EventDistributor,
    EventKind,
    NotificationEvent,
    RecipientScope,
    event_distributor,
)

logger = logging.getLogger(__name__)


def _check_references(db: Session, items: list[DutyAssignmentIn]) -> None:
    exam_ids = {item.exam_id for item in items}
    classroom_ids = {item.classroom_id for item in items if item.classroom_id}
    user_ids = {item.faculty_id for item in items}
    for item in items:
        user_ids.update(entry.faculty_id for entry in item.reserved_faculty)

    known_exams = set(db.execute(select(Exam.id).where(Exam.id.in_(exam_ids))).scalars())
    missing_exams = sorted(exam_ids - known_exams)
    if missing_exams:
        raise ResourceNotFoundError("Exam", missing_exams[0])

    if classroom_ids:
        known_rooms = set(db.execute(select(Classroom.id).where(Classroom.id.in_(classroom_ids))).scalars())
        missing_rooms = sorted(classroom_ids - known_rooms)
        if missing_rooms:
            raise ResourceNotFoundError("Classroom", missing_rooms[0])

    known_users = set(
        db.execute(select(User.id).where(User.id.in_(user_ids), User.is_active.is_(True))).scalars()
    )
    missing_users = sorted(user_ids - known_users)
    if missing_users:
        raise ResourceNotFoundError("Faculty", missing_users[0])


def _build_assignment(item: DutyAssignmentIn, settings: Settings, moment: datetime) -> DutyAssignment:
    deadline = as_utc(item.acknowledgment_deadline) or acknowledgment_deadline(item.duty_date, settings)
    if item.live_status_opens_at is not None:
        opens_at, closes_at = as_utc(item.live_status_opens_at), as_utc(item.live_status_closes_at)
    else:
        opens_at, closes_at = live_status_window(item.duty_date, item.start_time, settings)

    assignment = DutyAssignment(
        exam_id=item.exam_id,
        faculty_id=item.faculty_id,
        classroom_id=item.classroom_id,
        duty_date=item.duty_date,
        start_time=item.start_time,
        end_time=item.end_time,
        campus=item.campus,
        department=item.department,
        status=DutyStatus.pending,
        notified=True,
        notified_at=moment,
    )
    assignment.acknowledgment = AcknowledgmentState(status=AcknowledgmentStatus.pending, deadline=deadline)
    assignment.live_status = LiveStatus(status=LiveStatusValue.none, opens_at=opens_at, closes_at=closes_at)
    assignment.reserved_faculty = [
        ReservedFacultyEntry(
            faculty_id=entry.faculty_id,
            priority=entry.priority,
            status=ReservedFacultyStatus(entry.status),
        )
        for entry in item.reserved_faculty
    ]
    return assignment


def ingest_allocations(
    db: Session,
    *,
    items: list[DutyAssignmentIn],
    actor: User,
    now: datetime | None = None,
    distributor: EventDistributor | None = None,
    settings: Settings | None = None,
) -> list[DutyAssignment]:
    """Persist a batch produced by an allocation run and announce it.

    The whole batch is committed in one transaction or not at all.
    """
    if actor.role not in MANAGER_ROLES:
        raise PermissionDenied("Only administrators and department heads can record allocations")
    if actor.role == UserRole.hod:
        foreign = sorted({item.department for item in items if item.department != actor.department})
        if foreign:
            raise PermissionDenied(f"Department heads cannot allocate for other departments: {', '.join(foreign)}")

    config = settings or get_settings()
    moment = as_utc(now) or utc_now()
    hub = distributor or event_distributor

    try:
        _check_references(db, items)
    except STORAGE_ERRORS as exc:
        db.rollback()
        raise PersistenceUnavailable() from exc

    assignments = [_build_assignment(item, config, moment) for item in items]
    db.add_all(assignments)
    try:
        db.flush()
    except STORAGE_ERRORS as exc:
        db.rollback()
        raise PersistenceUnavailable() from exc

    by_faculty: dict[str, list[dict]] = defaultdict(list)
    by_department: dict[str, list[str]] = defaultdict(list)
    for assignment in assignments:
        by_faculty[assignment.faculty_id].append(duty_summary(assignment))
        by_department[assignment.department].append(assignment.id)
    assignment_ids = [item.id for item in assignments]

    log_activity(
        db,
        user=actor,
        action="allocation.batch",
        entity_type="duty_assignment",
        details={"created": len(assignments), "faculty": len(by_faculty)},
    )
    commit(db)
    logger.info("Recorded %d duty assignment(s) for %d faculty", len(assignment_ids), len(by_faculty))

    for faculty_id, duties in by_faculty.items():
        for summary in duties:
            hub.publish(
                NotificationEvent(
                    kind=EventKind.allocation_created,
                    scopes=(RecipientScope.user(faculty_id),),
                    payload=summary,
                    assignment_id=summary["assignment_id"],
                )
            )
    hub.publish(
        NotificationEvent(
            kind=EventKind.allocation_created,
            scopes=(RecipientScope.role(UserRole.admin),),
            payload={
                "created": len(assignment_ids),
                "assignment_ids": assignment_ids,
                "allocated_by_id": actor.id,
            },
        )
    )
    for department, department_ids in by_department.items():
        hub.publish(
            NotificationEvent(
                kind=EventKind.allocation_created,
                scopes=(RecipientScope.department_heads(department),),
                payload={
                    "created": len(department_ids),
                    "assignment_ids": department_ids,
                    "department": department,
                    "allocated_by_id": actor.id,
                },
            )
        )
    return assignments


def send_acknowledgment_reminders(
    db: Session,
    *,
    actor: User,
    now: datetime | None = None,
    distributor: EventDistributor | None = None,
    settings: Settings | None = None,
    locks: AssignmentLocks | None = None,
) -> dict[str, int]:
    """Push a one-time reminder for pending acknowledgments of duties coming up soon."""
    if actor.role != UserRole.admin:
        raise PermissionDenied("Only administrators can send acknowledgment reminders")

    config = settings or get_settings()
    moment = as_utc(now) or utc_now()
    hub = distributor or event_distributor
    # Duty dates are exam-timezone calendar days.
    first_day = exam_local_date(moment, config)
    last_day = exam_local_date(moment + timedelta(hours=config.reminder_lookahead_hours), config)

    try:
        candidate_ids = list(
            db.execute(
                select(DutyAssignment.id)
                .join(AcknowledgmentState, AcknowledgmentState.assignment_id == DutyAssignment.id)
                .where(
                    AcknowledgmentState.status == AcknowledgmentStatus.pending,
                    AcknowledgmentState.reminder_sent.is_(False),
                    DutyAssignment.status != DutyStatus.cancelled,
                    DutyAssignment.duty_date >= first_day,
                    DutyAssignment.duty_date <= last_day,
                )
                .order_by(DutyAssignment.duty_date, DutyAssignment.start_time, DutyAssignment.id)
            ).scalars()
        )
    except STORAGE_ERRORS as exc:
        db.rollback()
        raise PersistenceUnavailable() from exc

    sent = 0
    for assignment_id in candidate_ids:
        with locked_assignment(db, assignment_id, locks=locks) as assignment:
            ack = assignment.acknowledgment
            # Re-checked under the lock: the faculty may have answered meanwhile.
            if ack.status != AcknowledgmentStatus.pending or ack.reminder_sent:
                continue
            ack.reminder_sent = True
            log_duty_activity(db, user=actor, assignment_id=assignment.id, action="acknowledgment.reminder")
            payload = {
                **duty_summary(assignment),
                "change": "acknowledgment_reminder",
                "deadline": as_utc(ack.deadline).isoformat(),
            }
            faculty_id = assignment.faculty_id
            commit(db)
            hub.publish(
                NotificationEvent(
                    kind=EventKind.allocation_updated,
                    scopes=(RecipientScope.user(faculty_id),),
                    payload=payload,
                    assignment_id=assignment_id,
                )
            )
            sent += 1

    return {"sent": sent, "skipped": len(candidate_ids) - sent, "total": len(candidate_ids)}
