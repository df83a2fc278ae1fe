from datetime import date, datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.duty import parse_time_to_minutes


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ReservedFacultyIn(BaseModel):
    faculty_id: str = Field(min_length=1, max_length=36)
    priority: int = Field(default=1, ge=1, le=100)
    # Reserves who already turned down standby are kept on record but never ranked.
    status: Literal["available", "declined"] = "available"


class DutyAssignmentIn(BaseModel):
    exam_id: str = Field(min_length=1, max_length=36)
    faculty_id: str = Field(min_length=1, max_length=36)
    classroom_id: str | None = Field(default=None, max_length=36)
    duty_date: date = Field(alias="date")
    start_time: str
    end_time: str
    campus: str = Field(min_length=1, max_length=100)
    department: str = Field(min_length=1, max_length=200)
    acknowledgment_deadline: datetime | None = None
    live_status_opens_at: datetime | None = None
    live_status_closes_at: datetime | None = None
    reserved_faculty: list[ReservedFacultyIn] = Field(default_factory=list, max_length=20)

    model_config = {"populate_by_name": True}

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        parse_time_to_minutes(value)
        return value

    @model_validator(mode="after")
    def validate_slot(self) -> "DutyAssignmentIn":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        if (self.live_status_opens_at is None) != (self.live_status_closes_at is None):
            raise ValueError("live_status_opens_at and live_status_closes_at must be provided together")
        if self.live_status_opens_at and _aware(self.live_status_opens_at) >= _aware(self.live_status_closes_at):
            raise ValueError("live_status_opens_at must be before live_status_closes_at")
        reserve_ids = [item.faculty_id for item in self.reserved_faculty]
        if len(reserve_ids) != len(set(reserve_ids)):
            raise ValueError("reserved_faculty entries must reference distinct faculty")
        if self.faculty_id in reserve_ids:
            raise ValueError("assigned faculty cannot also be in the reserve pool")
        return self


class AllocationBatchIn(BaseModel):
    assignments: list[DutyAssignmentIn] = Field(min_length=1, max_length=2000)


class AllocationBatchOut(BaseModel):
    created: int
    assignment_ids: list[str]
    notified_faculty: int


class ReminderSummaryOut(BaseModel):
    sent: int
    skipped: int
    total: int
