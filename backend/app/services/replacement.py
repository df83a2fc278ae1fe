"""Replacement of a duty-holder from the duty's reserve pool.

Ranking never commits anything. The commit step re-checks availability under the duty lock,
so two managers choosing the same candidate resolve to exactly one winner.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
import logging

from sqlalchemy.orm import Session

from app.core.exceptions import CandidateNoLongerAvailable, ResourceNotFoundError
from app.models.duty_assignment import DutyAssignment, DutyStatus
from app.models.live_status import LiveStatusValue
from app.models.reserved_faculty import ReservedFacultyEntry, ReservedFacultyStatus
from app.models.user import User
from app.services.assignment_locks import AssignmentLocks
from app.services.audit import log_duty_activity
from app.services.duty_access import duty_summary, ensure_active, ensure_can_manage, manager_scopes
from app.services.duty_repository import as_utc, commit, load_assignment, locked_assignment, utc_now
from app.services.event_distributor import (
    EventDistributor,
    EventKind,
    NotificationEvent,
    RecipientScope,
    event_distributor,
)

logger = logging.getLogger(__name__)


@dataclass
class ReplacementOutcome:
    assignment: DutyAssignment
    outgoing_faculty_id: str
    incoming_faculty_id: str


def rank_candidates(entries: Iterable[ReservedFacultyEntry]) -> list[ReservedFacultyEntry]:
    available = [item for item in entries if item.status == ReservedFacultyStatus.available]
    return sorted(available, key=lambda item: (item.priority, item.faculty_id))


def resolve(assignment: DutyAssignment) -> list[ReservedFacultyEntry]:
    return rank_candidates(assignment.reserved_faculty)


def candidate_payload(entries: Iterable[ReservedFacultyEntry]) -> list[dict]:
    return [
        {"faculty_id": item.faculty_id, "priority": item.priority, "status": item.status.value}
        for item in entries
    ]


def get_ranked_candidates(db: Session, *, assignment_id: str, actor: User) -> list[ReservedFacultyEntry]:
    assignment = load_assignment(db, assignment_id)
    ensure_can_manage(assignment, actor)
    return resolve(assignment)


def apply_replacement(
    db: Session,
    *,
    assignment_id: str,
    faculty_id: str,
    actor: User,
    now: datetime | None = None,
    distributor: EventDistributor | None = None,
    locks: AssignmentLocks | None = None,
) -> ReplacementOutcome:
    moment = as_utc(now) or utc_now()
    hub = distributor or event_distributor

    with locked_assignment(db, assignment_id, locks=locks) as assignment:
        ensure_can_manage(assignment, actor)
        ensure_active(assignment)

        entry = next((item for item in assignment.reserved_faculty if item.faculty_id == faculty_id), None)
        if entry is None:
            raise ResourceNotFoundError("Reserved faculty entry", faculty_id)
        if entry.status != ReservedFacultyStatus.available:
            raise CandidateNoLongerAvailable(assignment.id, faculty_id)

        incoming = db.get(User, faculty_id)
        if incoming is None or not incoming.is_active:
            raise ResourceNotFoundError("Faculty", faculty_id)

        outgoing_faculty_id = assignment.faculty_id
        previous_live_status = assignment.live_status.status.value

        entry.status = ReservedFacultyStatus.assigned
        entry.assigned_at = moment
        assignment.faculty = incoming
        assignment.faculty_id = incoming.id
        assignment.status = DutyStatus.confirmed

        # The incoming faculty reports their own attendance.
        live = assignment.live_status
        live.status = LiveStatusValue.none
        live.eta = None
        live.emergency_reason = None
        live.reported_at = None

        log_duty_activity(
            db,
            user=actor,
            assignment_id=assignment.id,
            action="replacement.applied",
            outgoing_faculty_id=outgoing_faculty_id,
            incoming_faculty_id=incoming.id,
            previous_live_status=previous_live_status,
            priority=entry.priority,
        )
        # The acknowledgment stays as decided; it records who actually answered.
        ack = assignment.acknowledgment
        payload = {
            **duty_summary(assignment),
            "outgoing_faculty_id": outgoing_faculty_id,
            "incoming_faculty_id": incoming.id,
            "acknowledgment_status": ack.status.value if ack else None,
            "acknowledged_by_id": ack.acknowledged_by_id if ack else None,
            "replaced_by_id": actor.id,
            "replaced_at": moment.isoformat(),
        }
        commit(db)
        logger.info(
            "Replaced faculty %s with %s",
            outgoing_faculty_id,
            faculty_id,
            extra={"assignment_id": assignment_id},
        )

        hub.publish(
            NotificationEvent(
                kind=EventKind.replacement_applied,
                scopes=(
                    RecipientScope.user(outgoing_faculty_id),
                    RecipientScope.user(faculty_id),
                    *manager_scopes(assignment.department),
                ),
                payload=payload,
                assignment_id=assignment_id,
            )
        )

    return ReplacementOutcome(
        assignment=assignment,
        outgoing_faculty_id=outgoing_faculty_id,
        incoming_faculty_id=faculty_id,
    )
