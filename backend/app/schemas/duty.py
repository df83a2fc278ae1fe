from datetime import date, datetime
import re
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

from app.models.acknowledgment import AcknowledgmentStatus
from app.models.duty_assignment import DutyStatus
from app.models.live_status import LiveStatusValue
from app.models.reserved_faculty import ReservedFacultyStatus

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class AcknowledgeRequest(BaseModel):
    action: Literal["acknowledge", "unavailable"]
    reason: str | None = Field(default=None, max_length=1000)


class LiveStatusRequest(BaseModel):
    status: Literal["present", "on_the_way", "unable_to_reach"]
    eta: str | None = Field(default=None, max_length=100)
    emergency_reason: str | None = Field(default=None, max_length=1000)


class ReplacementRequest(BaseModel):
    faculty_id: str = Field(min_length=1, max_length=36)


class CancelDutyRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class AcknowledgmentOut(BaseModel):
    status: AcknowledgmentStatus
    deadline: datetime
    acknowledged_at: datetime | None = None
    acknowledged_by_id: str | None = None
    unavailable_reason: str | None = None
    reminder_sent: bool = False

    model_config = {"from_attributes": True}


class LiveStatusOut(BaseModel):
    status: LiveStatusValue
    eta: str | None = None
    emergency_reason: str | None = None
    reported_at: datetime | None = None
    opens_at: datetime
    closes_at: datetime

    model_config = {"from_attributes": True}


class ReservedFacultyOut(BaseModel):
    id: str
    faculty_id: str
    priority: int
    status: ReservedFacultyStatus
    assigned_at: datetime | None = None

    model_config = {"from_attributes": True}


class DutyAssignmentOut(BaseModel):
    id: str
    exam_id: str
    faculty_id: str
    classroom_id: str | None = None
    duty_date: date = Field(validation_alias=AliasChoices("duty_date", "date"), serialization_alias="date")
    start_time: str
    end_time: str
    campus: str
    department: str
    status: DutyStatus
    notified: bool
    notified_at: datetime | None = None
    acknowledgment: AcknowledgmentOut | None = None
    live_status: LiveStatusOut | None = None
    reserved_faculty: list[ReservedFacultyOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class AcknowledgeResult(BaseModel):
    assignment: DutyAssignmentOut
    deadline_missed: bool


class LiveStatusResult(BaseModel):
    assignment: DutyAssignmentOut
    replacement_candidates: list[ReservedFacultyOut] = Field(default_factory=list)


class ReplacementCandidatesOut(BaseModel):
    assignment_id: str
    candidates: list[ReservedFacultyOut]


class ReplacementResult(BaseModel):
    assignment: DutyAssignmentOut
    outgoing_faculty_id: str
    incoming_faculty_id: str


class AcknowledgmentOverviewOut(BaseModel):
    pending: list[DutyAssignmentOut]
    overdue: list[DutyAssignmentOut]
    acknowledged: list[DutyAssignmentOut]
    total: int


class LiveStatusBoardOut(BaseModel):
    present: list[DutyAssignmentOut]
    on_the_way: list[DutyAssignmentOut]
    unable_to_reach: list[DutyAssignmentOut]
    no_status: list[DutyAssignmentOut]
    total: int
