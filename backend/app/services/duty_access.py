from __future__ import annotations

from app.core.exceptions import InvalidTransition, PermissionDenied
from app.models.duty_assignment import DutyAssignment, DutyStatus
from app.models.user import User, UserRole
from app.services.event_distributor import RecipientScope

MANAGER_ROLES = frozenset({UserRole.admin, UserRole.hod})


def manager_scopes(department: str | None) -> tuple[RecipientScope, ...]:
    """Admins hear about every duty; department heads only about their own department's."""
    if not department:
        return (RecipientScope.role(UserRole.admin),)
    return (RecipientScope.role(UserRole.admin), RecipientScope.department_heads(department))


def ensure_duty_holder(assignment: DutyAssignment, actor: User) -> None:
    if assignment.faculty_id != actor.id:
        raise PermissionDenied("Only the assigned faculty member can update this duty")


def ensure_can_manage(assignment: DutyAssignment, actor: User) -> None:
    # Department heads only manage duties of their own department.
    if actor.role == UserRole.admin:
        return
    if actor.role == UserRole.hod and actor.department and actor.department == assignment.department:
        return
    raise PermissionDenied("Not authorized to manage this duty")


def scoped_department(actor: User, requested: str | None) -> str | None:
    if actor.role != UserRole.hod:
        return requested
    if not actor.department:
        raise PermissionDenied("Department head has no department assigned")
    return actor.department


def ensure_active(assignment: DutyAssignment) -> None:
    if assignment.status == DutyStatus.cancelled:
        raise InvalidTransition("Duty has been cancelled", details={"assignment_id": assignment.id})


def duty_summary(assignment: DutyAssignment) -> dict:
    return {
        "assignment_id": assignment.id,
        "exam_id": assignment.exam_id,
        "faculty_id": assignment.faculty_id,
        "classroom_id": assignment.classroom_id,
        "date": assignment.duty_date.isoformat(),
        "start_time": assignment.start_time,
        "end_time": assignment.end_time,
        "campus": assignment.campus,
        "department": assignment.department,
        "status": assignment.status.value,
    }
