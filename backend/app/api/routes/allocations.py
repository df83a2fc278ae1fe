from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_roles
from app.models.user import User, UserRole
from app.schemas.allocation import AllocationBatchIn, AllocationBatchOut, ReminderSummaryOut
from app.services.allocation_intake import ingest_allocations, send_acknowledgment_reminders

router = APIRouter()


@router.post("/allocations/batch", response_model=AllocationBatchOut, status_code=status.HTTP_201_CREATED)
def record_allocations(
    payload: AllocationBatchIn,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> AllocationBatchOut:
    assignments = ingest_allocations(db, items=payload.assignments, actor=current_user)
    return AllocationBatchOut(
        created=len(assignments),
        assignment_ids=[item.id for item in assignments],
        notified_faculty=len({item.faculty_id for item in assignments}),
    )


@router.post("/reminders/acknowledgments", response_model=ReminderSummaryOut)
def send_reminders(
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> ReminderSummaryOut:
    return ReminderSummaryOut(**send_acknowledgment_reminders(db, actor=current_user))
