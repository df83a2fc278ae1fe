from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.core.exceptions import PermissionDenied
from app.models.activity_log import ActivityLog
from app.models.duty_assignment import DutyAssignment
from app.models.user import User, UserRole
from app.schemas.activity import ActivityLogOut
from app.schemas.duty import (
    AcknowledgeRequest,
    AcknowledgeResult,
    AcknowledgmentOverviewOut,
    CancelDutyRequest,
    DutyAssignmentOut,
    LiveStatusBoardOut,
    LiveStatusRequest,
    LiveStatusResult,
    ReplacementCandidatesOut,
    ReplacementRequest,
    ReplacementResult,
)
from app.services.duty_access import ensure_can_manage, scoped_department
from app.services.duty_boards import acknowledgment_overview, live_status_board
from app.services.duty_lifecycle import acknowledge_duty, cancel_duty, report_live_status
from app.services.duty_repository import list_assignments, load_assignment
from app.services.replacement import apply_replacement, get_ranked_candidates

router = APIRouter()


def _ensure_can_view(assignment: DutyAssignment, current_user: User) -> None:
    if current_user.role == UserRole.faculty:
        if assignment.faculty_id != current_user.id:
            raise PermissionDenied("Not authorized to view this duty")
        return
    ensure_can_manage(assignment, current_user)


@router.get("/duties", response_model=list[DutyAssignmentOut])
def list_duties(
    campus: str | None = Query(default=None),
    department: str | None = Query(default=None),
    faculty_id: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    include_cancelled: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[DutyAssignmentOut]:
    if current_user.role == UserRole.faculty:
        faculty_id = current_user.id
    else:
        department = scoped_department(current_user, department)
    return list_assignments(
        db,
        faculty_id=faculty_id,
        campus=campus,
        department=department,
        date_from=date_from,
        date_to=date_to,
        include_cancelled=include_cancelled,
    )


@router.get("/duties/acknowledgments", response_model=AcknowledgmentOverviewOut)
def duty_acknowledgments(
    campus: str | None = Query(default=None),
    department: str | None = Query(default=None),
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> AcknowledgmentOverviewOut:
    overview = acknowledgment_overview(
        db,
        campus=campus,
        department=scoped_department(current_user, department),
    )
    return AcknowledgmentOverviewOut.model_validate(overview, from_attributes=True)


@router.get("/duties/live-status", response_model=LiveStatusBoardOut)
def duty_live_status_board(
    campus: str | None = Query(default=None),
    department: str | None = Query(default=None),
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> LiveStatusBoardOut:
    board = live_status_board(
        db,
        campus=campus,
        department=scoped_department(current_user, department),
    )
    return LiveStatusBoardOut.model_validate(board, from_attributes=True)


@router.get("/duties/{assignment_id}", response_model=DutyAssignmentOut)
def get_duty(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DutyAssignmentOut:
    assignment = load_assignment(db, assignment_id)
    _ensure_can_view(assignment, current_user)
    return assignment


@router.get("/duties/{assignment_id}/activity", response_model=list[ActivityLogOut])
def list_duty_activity(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ActivityLogOut]:
    assignment = load_assignment(db, assignment_id)
    _ensure_can_view(assignment, current_user)
    query = (
        select(ActivityLog)
        .where(ActivityLog.entity_type == "duty_assignment", ActivityLog.entity_id == assignment_id)
        .order_by(ActivityLog.created_at, ActivityLog.id)
    )
    return list(db.execute(query).scalars())


@router.post("/duties/{assignment_id}/acknowledge", response_model=AcknowledgeResult)
def acknowledge(
    assignment_id: str,
    payload: AcknowledgeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AcknowledgeResult:
    outcome = acknowledge_duty(
        db,
        assignment_id=assignment_id,
        actor=current_user,
        action=payload.action,
        reason=payload.reason,
    )
    return AcknowledgeResult(
        assignment=DutyAssignmentOut.model_validate(outcome.assignment),
        deadline_missed=outcome.deadline_missed,
    )


@router.post("/duties/{assignment_id}/live-status", response_model=LiveStatusResult)
def update_live_status(
    assignment_id: str,
    payload: LiveStatusRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LiveStatusResult:
    outcome = report_live_status(
        db,
        assignment_id=assignment_id,
        actor=current_user,
        status=payload.status,
        eta=payload.eta,
        emergency_reason=payload.emergency_reason,
    )
    return LiveStatusResult.model_validate(
        {"assignment": outcome.assignment, "replacement_candidates": outcome.replacement_candidates},
        from_attributes=True,
    )


@router.get("/duties/{assignment_id}/replacement-candidates", response_model=ReplacementCandidatesOut)
def replacement_candidates(
    assignment_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> ReplacementCandidatesOut:
    candidates = get_ranked_candidates(db, assignment_id=assignment_id, actor=current_user)
    return ReplacementCandidatesOut.model_validate(
        {"assignment_id": assignment_id, "candidates": candidates},
        from_attributes=True,
    )


@router.post("/duties/{assignment_id}/replacement", response_model=ReplacementResult)
def replace_faculty(
    assignment_id: str,
    payload: ReplacementRequest,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> ReplacementResult:
    outcome = apply_replacement(
        db,
        assignment_id=assignment_id,
        faculty_id=payload.faculty_id,
        actor=current_user,
    )
    return ReplacementResult(
        assignment=DutyAssignmentOut.model_validate(outcome.assignment),
        outgoing_faculty_id=outcome.outgoing_faculty_id,
        incoming_faculty_id=outcome.incoming_faculty_id,
    )


@router.post("/duties/{assignment_id}/cancel", response_model=DutyAssignmentOut)
def cancel(
    assignment_id: str,
    payload: CancelDutyRequest,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> DutyAssignmentOut:
    return cancel_duty(db, assignment_id=assignment_id, actor=current_user, reason=payload.reason)
