"""Manager read views: the acknowledgment overview and the exam-day live status board.

Both read without locks. Duties whose exam is over drop off the views that need no more action.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.models.acknowledgment import AcknowledgmentStatus
from app.models.duty_assignment import DutyAssignment
from app.models.live_status import LiveStatusValue
from app.services.duty_lifecycle import exam_local_date, exam_moment
from app.services.duty_repository import as_utc, list_assignments, utc_now


@dataclass
class AcknowledgmentOverview:
    pending: list[DutyAssignment] = field(default_factory=list)
    overdue: list[DutyAssignment] = field(default_factory=list)
    acknowledged: list[DutyAssignment] = field(default_factory=list)
    total: int = 0


@dataclass
class LiveStatusBoard:
    present: list[DutyAssignment] = field(default_factory=list)
    on_the_way: list[DutyAssignment] = field(default_factory=list)
    unable_to_reach: list[DutyAssignment] = field(default_factory=list)
    no_status: list[DutyAssignment] = field(default_factory=list)
    total: int = 0


def exam_has_ended(assignment: DutyAssignment, moment: datetime, settings: Settings | None = None) -> bool:
    return moment > exam_moment(assignment.duty_date, assignment.end_time, settings)


def acknowledgment_overview(
    db: Session,
    *,
    campus: str | None = None,
    department: str | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> AcknowledgmentOverview:
    """Split open duties by acknowledgment state.

    Pending answers before the deadline stay listed even after the exam day. Overdue and
    acknowledged duties are listed until their exam day has passed.
    """
    config = settings or get_settings()
    moment = as_utc(now) or utc_now()
    today = exam_local_date(moment, config)

    assignments = list_assignments(db, campus=campus, department=department)
    overview = AcknowledgmentOverview(total=len(assignments))
    for assignment in assignments:
        ack = assignment.acknowledgment
        if ack is None:
            continue
        exam_passed = assignment.duty_date < today
        if ack.status == AcknowledgmentStatus.pending:
            if as_utc(ack.deadline) > moment:
                overview.pending.append(assignment)
            elif not exam_passed:
                overview.overdue.append(assignment)
        elif ack.status == AcknowledgmentStatus.acknowledged and not exam_passed:
            overview.acknowledged.append(assignment)
    return overview


def live_status_board(
    db: Session,
    *,
    campus: str | None = None,
    department: str | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> LiveStatusBoard:
    config = settings or get_settings()
    moment = as_utc(now) or utc_now()
    today = exam_local_date(moment, config)

    assignments = list_assignments(db, campus=campus, department=department, date_from=today, date_to=today)
    board = LiveStatusBoard(total=len(assignments))
    buckets = {
        LiveStatusValue.present: board.present,
        LiveStatusValue.on_the_way: board.on_the_way,
        LiveStatusValue.unable_to_reach: board.unable_to_reach,
        LiveStatusValue.none: board.no_status,
    }
    for assignment in assignments:
        if exam_has_ended(assignment, moment, config):
            continue
        status = assignment.live_status.status if assignment.live_status else LiveStatusValue.none
        buckets[status].append(assignment)
    return board
