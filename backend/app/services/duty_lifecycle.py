"""Acknowledgment and live-status state machine for invigilation duties.

Acknowledgment: ``pending -> acknowledged | unavailable``, decided once. Late submissions are
accepted and flagged with ``deadline_missed``.

Live status, only inside ``[opens_at, closes_at)``::

    none ------> present
    none ------> on_the_way ---> present
    none | on_the_way ---------> unable_to_reach   (consults the replacement resolver)

Every accepted transition is committed and published while the duty lock is held, so events
for one duty leave in commit order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
import logging
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    AlreadyDecided,
    InvalidTransition,
    MissingRequiredField,
    OutsideWindow,
)
from app.models.acknowledgment import AcknowledgmentStatus
from app.models.duty_assignment import DutyAssignment, DutyStatus
from app.models.live_status import LiveStatusValue
from app.models.reserved_faculty import ReservedFacultyEntry
from app.models.user import User
from app.schemas.duty import parse_time_to_minutes
from app.services.assignment_locks import AssignmentLocks
from app.services.audit import log_duty_activity
from app.services.duty_access import (
    duty_summary,
    ensure_active,
    ensure_can_manage,
    ensure_duty_holder,
    manager_scopes,
)
from app.services.duty_repository import as_utc, commit, locked_assignment, normalize_text, utc_now
from app.services.event_distributor import (
    EventDistributor,
    EventKind,
    NotificationEvent,
    RecipientScope,
    event_distributor,
)
from app.services.replacement import candidate_payload, resolve

logger = logging.getLogger(__name__)

ACKNOWLEDGMENT_ACTIONS = ("acknowledge", "unavailable")

LIVE_TRANSITIONS: dict[LiveStatusValue, frozenset[LiveStatusValue]] = {
    LiveStatusValue.none: frozenset(
        {LiveStatusValue.present, LiveStatusValue.on_the_way, LiveStatusValue.unable_to_reach}
    ),
    LiveStatusValue.on_the_way: frozenset({LiveStatusValue.present, LiveStatusValue.unable_to_reach}),
    LiveStatusValue.present: frozenset(),
    LiveStatusValue.unable_to_reach: frozenset(),
}


@dataclass
class AcknowledgmentOutcome:
    assignment: DutyAssignment
    deadline_missed: bool


@dataclass
class LiveStatusOutcome:
    assignment: DutyAssignment
    replacement_candidates: list[ReservedFacultyEntry] = field(default_factory=list)


def _exam_zone(settings: Settings) -> ZoneInfo:
    return ZoneInfo(settings.exam_timezone)


def acknowledgment_deadline(duty_date: date, settings: Settings | None = None) -> datetime:
    config = settings or get_settings()
    local_day = duty_date - timedelta(days=config.acknowledgment_deadline_days_before)
    local = datetime.combine(local_day, time(hour=config.acknowledgment_deadline_hour), tzinfo=_exam_zone(config))
    return local.astimezone(timezone.utc)


def exam_moment(duty_date: date, clock_time: str, settings: Settings | None = None) -> datetime:
    """UTC instant of an HH:MM exam-timezone wall clock time on the duty date."""
    config = settings or get_settings()
    minutes = parse_time_to_minutes(clock_time)
    return datetime.combine(
        duty_date,
        time(hour=minutes // 60, minute=minutes % 60),
        tzinfo=_exam_zone(config),
    ).astimezone(timezone.utc)


def exam_local_date(moment: datetime, settings: Settings | None = None) -> date:
    config = settings or get_settings()
    return as_utc(moment).astimezone(_exam_zone(config)).date()


def live_status_window(duty_date: date, start_time: str, settings: Settings | None = None) -> tuple[datetime, datetime]:
    config = settings or get_settings()
    start = exam_moment(duty_date, start_time, config)
    return start - timedelta(minutes=config.live_status_window_minutes), start


def is_inside_window(moment: datetime, opens_at: datetime | None, closes_at: datetime | None) -> bool:
    opens = as_utc(opens_at)
    closes = as_utc(closes_at)
    if opens is None or closes is None:
        return False
    return opens <= moment < closes


def acknowledge_duty(
    db: Session,
    *,
    assignment_id: str,
    actor: User,
    action: str,
    reason: str | None = None,
    now: datetime | None = None,
    distributor: EventDistributor | None = None,
    locks: AssignmentLocks | None = None,
) -> AcknowledgmentOutcome:
    moment = as_utc(now) or utc_now()
    hub = distributor or event_distributor

    with locked_assignment(db, assignment_id, locks=locks) as assignment:
        ensure_duty_holder(assignment, actor)
        ack = assignment.acknowledgment
        if ack.status != AcknowledgmentStatus.pending:
            raise AlreadyDecided(assignment.id, ack.status.value)
        ensure_active(assignment)
        if action not in ACKNOWLEDGMENT_ACTIONS:
            raise InvalidTransition(
                f"Invalid action {action!r}. Use 'acknowledge' or 'unavailable'",
                details={"action": action},
            )

        note = normalize_text(reason)
        if action == "unavailable" and note is None:
            raise MissingRequiredField("reason", "Reason is required when marking unavailable")

        deadline = as_utc(ack.deadline)
        deadline_missed = deadline is not None and moment > deadline

        if action == "acknowledge":
            ack.status = AcknowledgmentStatus.acknowledged
            assignment.status = DutyStatus.confirmed
        else:
            ack.status = AcknowledgmentStatus.unavailable
            ack.unavailable_reason = note
            assignment.status = DutyStatus.requested_change
        ack.acknowledged_at = moment
        ack.acknowledged_by_id = actor.id

        log_duty_activity(
            db,
            user=actor,
            assignment_id=assignment.id,
            action=f"acknowledgment.{ack.status.value}",
            reason=note,
            deadline_missed=deadline_missed,
        )
        summary = duty_summary(assignment)
        submitted = {
            **summary,
            "acknowledgment_status": ack.status.value,
            "unavailable_reason": ack.unavailable_reason,
            "acknowledged_at": moment.isoformat(),
            "deadline_missed": deadline_missed,
        }
        commit(db)
        if deadline_missed:
            logger.info("Acknowledgment submitted after deadline", extra={"assignment_id": assignment_id})

        hub.publish(
            NotificationEvent(
                kind=EventKind.acknowledgment_submitted,
                scopes=manager_scopes(assignment.department),
                payload=submitted,
                assignment_id=assignment_id,
            )
        )
        hub.publish(
            NotificationEvent(
                kind=EventKind.allocation_updated,
                scopes=(RecipientScope.user(actor.id),),
                payload={**summary, "change": "acknowledgment", "acknowledgment_status": ack.status.value},
                assignment_id=assignment_id,
            )
        )

    return AcknowledgmentOutcome(assignment=assignment, deadline_missed=deadline_missed)


def _required_live_detail(target: LiveStatusValue, eta: str | None, emergency_reason: str | None) -> None:
    if target == LiveStatusValue.on_the_way and eta is None:
        raise MissingRequiredField("eta", "Estimated arrival time is required when on the way")
    if target == LiveStatusValue.unable_to_reach and emergency_reason is None:
        raise MissingRequiredField("emergency_reason", "Emergency reason is required when unable to reach")


def report_live_status(
    db: Session,
    *,
    assignment_id: str,
    actor: User,
    status: str,
    eta: str | None = None,
    emergency_reason: str | None = None,
    now: datetime | None = None,
    distributor: EventDistributor | None = None,
    locks: AssignmentLocks | None = None,
) -> LiveStatusOutcome:
    moment = as_utc(now) or utc_now()
    hub = distributor or event_distributor
    try:
        target = LiveStatusValue(status)
    except ValueError:
        target = None
    if target is None or target == LiveStatusValue.none:
        raise InvalidTransition(
            f"Invalid status {status!r}. Must be one of: present, on_the_way, unable_to_reach",
            details={"status": status},
        )

    with locked_assignment(db, assignment_id, locks=locks) as assignment:
        ensure_duty_holder(assignment, actor)
        ensure_active(assignment)
        live = assignment.live_status
        if not is_inside_window(moment, live.opens_at, live.closes_at):
            raise OutsideWindow(as_utc(live.opens_at), as_utc(live.closes_at))

        current = live.status
        if target not in LIVE_TRANSITIONS[current]:
            raise InvalidTransition(
                f"Cannot change live status from {current.value} to {target.value}",
                details={"from": current.value, "to": target.value},
            )

        eta_value = normalize_text(eta)
        reason_value = normalize_text(emergency_reason)
        _required_live_detail(target, eta_value, reason_value)

        live.status = target
        live.eta = eta_value if target == LiveStatusValue.on_the_way else None
        live.emergency_reason = reason_value if target == LiveStatusValue.unable_to_reach else None
        live.reported_at = moment

        candidates: list[ReservedFacultyEntry] = []
        if target == LiveStatusValue.unable_to_reach:
            candidates = resolve(assignment)

        log_duty_activity(
            db,
            user=actor,
            assignment_id=assignment.id,
            action=f"live_status.{target.value}",
            previous=current.value,
            eta=live.eta,
            emergency_reason=live.emergency_reason,
        )
        summary = duty_summary(assignment)
        changed = {
            **summary,
            "live_status": target.value,
            "previous_live_status": current.value,
            "eta": live.eta,
            "emergency_reason": live.emergency_reason,
            "reported_at": moment.isoformat(),
        }
        if target == LiveStatusValue.unable_to_reach:
            changed["replacement_candidates"] = candidate_payload(candidates)
        commit(db)
        if target == LiveStatusValue.unable_to_reach:
            logger.warning(
                "Faculty %s cannot reach the exam; %d reserve candidate(s) available",
                actor.id,
                len(candidates),
                extra={"assignment_id": assignment_id},
            )

        hub.publish(
            NotificationEvent(
                kind=EventKind.live_status_changed,
                scopes=manager_scopes(assignment.department),
                payload=changed,
                assignment_id=assignment_id,
            )
        )
        hub.publish(
            NotificationEvent(
                kind=EventKind.allocation_updated,
                scopes=(RecipientScope.user(actor.id),),
                payload={**summary, "change": "live_status", "live_status": target.value},
                assignment_id=assignment_id,
            )
        )

    return LiveStatusOutcome(assignment=assignment, replacement_candidates=candidates)


def cancel_duty(
    db: Session,
    *,
    assignment_id: str,
    actor: User,
    reason: str | None = None,
    distributor: EventDistributor | None = None,
    locks: AssignmentLocks | None = None,
) -> DutyAssignment:
    hub = distributor or event_distributor

    with locked_assignment(db, assignment_id, locks=locks) as assignment:
        ensure_can_manage(assignment, actor)
        if assignment.status == DutyStatus.cancelled:
            raise InvalidTransition("Duty is already cancelled", details={"assignment_id": assignment.id})

        previous = assignment.status.value
        assignment.status = DutyStatus.cancelled
        note = normalize_text(reason)
        log_duty_activity(db, user=actor, assignment_id=assignment.id, action="cancelled", previous=previous, reason=note)
        payload = {**duty_summary(assignment), "change": "cancelled", "reason": note}
        commit(db)

        hub.publish(
            NotificationEvent(
                kind=EventKind.allocation_updated,
                scopes=(RecipientScope.user(assignment.faculty_id), *manager_scopes(assignment.department)),
                payload=payload,
                assignment_id=assignment_id,
            )
        )

    return assignment
