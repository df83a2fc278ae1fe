from datetime import datetime, timezone

import pytest

from app.core.exceptions import (
    AlreadyDecided,
    InvalidTransition,
    MissingRequiredField,
    OutsideWindow,
    PermissionDenied,
)
from app.models.acknowledgment import AcknowledgmentStatus
from app.models.activity_log import ActivityLog
from app.models.duty_assignment import DutyStatus
from app.models.live_status import LiveStatusValue
from app.models.user import UserRole
from app.services.duty_lifecycle import (
    acknowledge_duty,
    acknowledgment_deadline,
    cancel_duty,
    live_status_window,
    report_live_status,
)
from helpers import EXAM_DAY, RecordingChannel

BEFORE_DEADLINE = datetime(2026, 11, 14, 9, 0, tzinfo=timezone.utc)
AFTER_DEADLINE = datetime(2026, 11, 15, 19, 0, tzinfo=timezone.utc)
INSIDE_WINDOW = datetime(2026, 11, 16, 9, 45, tzinfo=timezone.utc)


def test_deadline_and_window_follow_exam_day(settings):
    assert acknowledgment_deadline(EXAM_DAY, settings) == datetime(2026, 11, 15, 18, 0, tzinfo=timezone.utc)
    opens_at, closes_at = live_status_window(EXAM_DAY, "10:00", settings)
    assert opens_at == datetime(2026, 11, 16, 9, 30, tzinfo=timezone.utc)
    assert closes_at == datetime(2026, 11, 16, 10, 0, tzinfo=timezone.utc)


def test_deadline_uses_exam_timezone(settings):
    local = settings.model_copy(update={"exam_timezone": "Asia/Kolkata"})
    assert acknowledgment_deadline(EXAM_DAY, local) == datetime(2026, 11, 15, 12, 30, tzinfo=timezone.utc)


def test_acknowledge_confirms_duty_and_notifies(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)
    admin_channel = RecordingChannel()
    faculty_channel = RecordingChannel()
    distributor.register("admin-1", [UserRole.admin], admin_channel)
    distributor.register(faculty.id, faculty.roles, faculty_channel)

    outcome = acknowledge_duty(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        action="acknowledge",
        now=BEFORE_DEADLINE,
        distributor=distributor,
        locks=locks,
    )

    assert outcome.deadline_missed is False
    assert outcome.assignment.status == DutyStatus.confirmed
    assert outcome.assignment.acknowledgment.status == AcknowledgmentStatus.acknowledged
    assert outcome.assignment.acknowledgment.acknowledged_by_id == faculty.id
    assert admin_channel.events() == ["acknowledgment_submitted"]
    assert faculty_channel.events() == ["allocation_updated"]
    assert faculty_channel.messages[0]["data"]["change"] == "acknowledgment"


def test_second_decision_is_rejected_without_change(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)
    acknowledge_duty(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        action="acknowledge",
        now=BEFORE_DEADLINE,
        distributor=distributor,
        locks=locks,
    )

    for action, reason in (("unavailable", "Family emergency"), ("acknowledge", None)):
        with pytest.raises(AlreadyDecided) as exc_info:
            acknowledge_duty(
                db_session,
                assignment_id=assignment.id,
                actor=faculty,
                action=action,
                reason=reason,
                now=BEFORE_DEADLINE,
                distributor=distributor,
                locks=locks,
            )
        assert exc_info.value.details["status"] == "acknowledged"

    db_session.expire_all()
    assert assignment.acknowledgment.status == AcknowledgmentStatus.acknowledged
    assert assignment.acknowledgment.unavailable_reason is None
    assert assignment.status == DutyStatus.confirmed


def test_late_acknowledgment_is_accepted_and_flagged(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)

    outcome = acknowledge_duty(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        action="acknowledge",
        now=AFTER_DEADLINE,
        distributor=distributor,
        locks=locks,
    )

    assert outcome.deadline_missed is True
    assert outcome.assignment.acknowledgment.status == AcknowledgmentStatus.acknowledged


def test_unavailable_requires_reason(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)

    with pytest.raises(MissingRequiredField) as exc_info:
        acknowledge_duty(
            db_session,
            assignment_id=assignment.id,
            actor=faculty,
            action="unavailable",
            reason="   ",
            now=BEFORE_DEADLINE,
            distributor=distributor,
            locks=locks,
        )
    assert exc_info.value.details == {"field": "reason"}

    db_session.expire_all()
    assert assignment.acknowledgment.status == AcknowledgmentStatus.pending

    outcome = acknowledge_duty(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        action="unavailable",
        reason="Medical leave",
        now=BEFORE_DEADLINE,
        distributor=distributor,
        locks=locks,
    )
    assert outcome.assignment.status == DutyStatus.requested_change
    assert outcome.assignment.acknowledgment.unavailable_reason == "Medical leave"


def test_only_the_duty_holder_can_acknowledge(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    other = make_user()
    assignment = make_assignment(faculty)

    with pytest.raises(PermissionDenied):
        acknowledge_duty(
            db_session,
            assignment_id=assignment.id,
            actor=other,
            action="acknowledge",
            distributor=distributor,
            locks=locks,
        )


@pytest.mark.parametrize(
    "moment",
    [
        datetime(2026, 11, 16, 9, 29, 59, tzinfo=timezone.utc),
        datetime(2026, 11, 16, 10, 0, tzinfo=timezone.utc),
        datetime(2026, 11, 16, 11, 0, tzinfo=timezone.utc),
    ],
)
def test_live_status_outside_window_is_rejected(db_session, make_user, make_assignment, distributor, locks, moment):
    faculty = make_user()
    assignment = make_assignment(faculty)
    admin_channel = RecordingChannel()
    distributor.register("admin-1", [UserRole.admin], admin_channel)

    with pytest.raises(OutsideWindow) as exc_info:
        report_live_status(
            db_session,
            assignment_id=assignment.id,
            actor=faculty,
            status="present",
            now=moment,
            distributor=distributor,
            locks=locks,
        )

    assert exc_info.value.details["opens_at"].startswith("2026-11-16T09:30:00")
    assert exc_info.value.details["closes_at"].startswith("2026-11-16T10:00:00")
    db_session.expire_all()
    assert assignment.live_status.status == LiveStatusValue.none
    assert assignment.live_status.reported_at is None
    assert admin_channel.messages == []


def test_window_opening_instant_is_inside(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)

    outcome = report_live_status(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        status="present",
        now=datetime(2026, 11, 16, 9, 30, tzinfo=timezone.utc),
        distributor=distributor,
        locks=locks,
    )

    assert outcome.assignment.live_status.status == LiveStatusValue.present


def test_on_the_way_then_present(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)
    hod_channel = RecordingChannel()
    faculty_channel = RecordingChannel()
    distributor.register("hod-1", [UserRole.hod], hod_channel, department="CSE")
    distributor.register(faculty.id, faculty.roles, faculty_channel)

    with pytest.raises(MissingRequiredField):
        report_live_status(
            db_session,
            assignment_id=assignment.id,
            actor=faculty,
            status="on_the_way",
            now=INSIDE_WINDOW,
            distributor=distributor,
            locks=locks,
        )

    report_live_status(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        status="on_the_way",
        eta="10 minutes",
        now=INSIDE_WINDOW,
        distributor=distributor,
        locks=locks,
    )
    with pytest.raises(InvalidTransition):
        report_live_status(
            db_session,
            assignment_id=assignment.id,
            actor=faculty,
            status="on_the_way",
            eta="5 minutes",
            now=INSIDE_WINDOW,
            distributor=distributor,
            locks=locks,
        )
    outcome = report_live_status(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        status="present",
        now=INSIDE_WINDOW,
        distributor=distributor,
        locks=locks,
    )

    live = outcome.assignment.live_status
    assert live.status == LiveStatusValue.present
    assert live.eta is None
    assert live.reported_at is not None
    assert hod_channel.events() == ["live_status_changed", "live_status_changed"]
    assert [item["data"]["live_status"] for item in hod_channel.messages] == ["on_the_way", "present"]
    assert faculty_channel.events() == ["allocation_updated", "allocation_updated"]
    sequences = [item["sequence"] for item in hod_channel.messages]
    assert sequences == sorted(sequences)


def test_present_is_terminal(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)
    report_live_status(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        status="present",
        now=INSIDE_WINDOW,
        distributor=distributor,
        locks=locks,
    )

    with pytest.raises(InvalidTransition):
        report_live_status(
            db_session,
            assignment_id=assignment.id,
            actor=faculty,
            status="unable_to_reach",
            emergency_reason="Car breakdown",
            now=INSIDE_WINDOW,
            distributor=distributor,
            locks=locks,
        )


def test_unknown_live_status_is_rejected(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)

    with pytest.raises(InvalidTransition):
        report_live_status(
            db_session,
            assignment_id=assignment.id,
            actor=faculty,
            status="none",
            now=INSIDE_WINDOW,
            distributor=distributor,
            locks=locks,
        )


def test_cancelled_duty_rejects_updates(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    hod = make_user(UserRole.hod)
    assignment = make_assignment(faculty)
    faculty_channel = RecordingChannel()
    distributor.register(faculty.id, faculty.roles, faculty_channel)

    cancel_duty(
        db_session,
        assignment_id=assignment.id,
        actor=hod,
        reason="Exam merged",
        distributor=distributor,
        locks=locks,
    )

    assert faculty_channel.events() == ["allocation_updated"]
    assert faculty_channel.messages[0]["data"]["change"] == "cancelled"
    with pytest.raises(InvalidTransition):
        acknowledge_duty(
            db_session,
            assignment_id=assignment.id,
            actor=faculty,
            action="acknowledge",
            distributor=distributor,
            locks=locks,
        )
    with pytest.raises(InvalidTransition):
        cancel_duty(db_session, assignment_id=assignment.id, actor=hod, distributor=distributor, locks=locks)


def test_department_head_cannot_cancel_other_department(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user(department="ECE")
    hod = make_user(UserRole.hod, department="CSE")
    assignment = make_assignment(faculty, department="ECE")

    with pytest.raises(PermissionDenied):
        cancel_duty(db_session, assignment_id=assignment.id, actor=hod, distributor=distributor, locks=locks)


def test_accepted_transitions_are_audited(db_session, make_user, make_assignment, distributor, locks):
    faculty = make_user()
    assignment = make_assignment(faculty)
    acknowledge_duty(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        action="acknowledge",
        now=BEFORE_DEADLINE,
        distributor=distributor,
        locks=locks,
    )
    report_live_status(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        status="present",
        now=INSIDE_WINDOW,
        distributor=distributor,
        locks=locks,
    )

    actions = [
        item.action
        for item in db_session.query(ActivityLog)
        .filter(ActivityLog.entity_id == assignment.id)
        .order_by(ActivityLog.created_at, ActivityLog.action)
    ]
    assert sorted(actions) == ["duty.acknowledgment.acknowledged", "duty.live_status.present"]


def test_department_heads_only_hear_about_their_department(
    db_session, make_user, make_assignment, distributor, locks
):
    faculty = make_user(department="CSE")
    cse_hod = make_user(UserRole.hod, department="CSE")
    mech_hod = make_user(UserRole.hod, department="MECH")
    assignment = make_assignment(faculty, department="CSE")
    cse_channel = RecordingChannel()
    mech_channel = RecordingChannel()
    distributor.register(cse_hod.id, cse_hod.roles, cse_channel, department=cse_hod.department)
    distributor.register(mech_hod.id, mech_hod.roles, mech_channel, department=mech_hod.department)

    report_live_status(
        db_session,
        assignment_id=assignment.id,
        actor=faculty,
        status="unable_to_reach",
        emergency_reason="private medical",
        now=INSIDE_WINDOW,
        distributor=distributor,
        locks=locks,
    )

    assert cse_channel.events() == ["live_status_changed"]
    assert cse_channel.messages[0]["data"]["emergency_reason"] == "private medical"
    assert mech_channel.messages == []
