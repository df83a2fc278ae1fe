from datetime import date

from pydantic import AliasChoices, BaseModel, Field

from app.models.duty_assignment import DutyStatus


class ClassroomOut(BaseModel):
    id: str
    room_number: str
    block: str
    floor: str | None = None
    building: str | None = None
    campus: str

    model_config = {"from_attributes": True}


class ExamOut(BaseModel):
    id: str
    exam_name: str
    course_code: str

    model_config = {"from_attributes": True}


class SessionFacultyOut(BaseModel):
    id: str
    name: str
    email: str
    department: str | None = None

    model_config = {"from_attributes": True}


class DutySessionOut(BaseModel):
    classroom: ClassroomOut
    exam: ExamOut | None = None
    duty_date: date = Field(validation_alias=AliasChoices("duty_date", "date"), serialization_alias="date")
    start_time: str
    end_time: str
    status: DutyStatus
    campus: str
    department: str
    assignment_ids: list[str]
    faculty: list[SessionFacultyOut]

    model_config = {"from_attributes": True}


class SessionListOut(BaseModel):
    sessions: list[DutySessionOut]
    dropped_count: int = 0
    warnings: list[str] = Field(default_factory=list)
