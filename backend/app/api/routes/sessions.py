from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.models.user import User, UserRole
from app.schemas.session import DutySessionOut, SessionListOut
from app.services.duty_access import scoped_department
from app.services.duty_repository import list_assignments
from app.services.session_aggregator import aggregate

router = APIRouter()


@router.get("/sessions", response_model=SessionListOut)
def list_sessions(
    campus: str | None = Query(default=None),
    department: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> SessionListOut:
    assignments = list_assignments(
        db,
        campus=campus,
        department=scoped_department(current_user, department),
        date_from=date_from,
        date_to=date_to,
    )
    result = aggregate(assignments)
    sessions = [
        DutySessionOut.model_validate(
            {
                "classroom": item.classroom,
                "exam": item.exam,
                "duty_date": item.duty_date,
                "start_time": item.start_time,
                "end_time": item.end_time,
                "status": item.status,
                "campus": item.campus,
                "department": item.department,
                "assignment_ids": item.assignment_ids,
                "faculty": [assignment.faculty for assignment in item.assignments],
            },
            from_attributes=True,
        )
        for item in result.sessions
    ]
    return SessionListOut(sessions=sessions, dropped_count=result.dropped_count, warnings=result.warnings)
