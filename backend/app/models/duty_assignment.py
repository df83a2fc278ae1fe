import uuid
from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Enum as SAEnum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.acknowledgment import AcknowledgmentState
from app.models.classroom import Classroom
from app.models.exam import Exam
from app.models.live_status import LiveStatus
from app.models.reserved_faculty import ReservedFacultyEntry
from app.models.user import User


class DutyStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    requested_change = "requested_change"
    cancelled = "cancelled"


class DutyAssignment(Base):
    __tablename__ = "duty_assignments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    exam_id: Mapped[str] = mapped_column(ForeignKey("exams.id"), nullable=False, index=True)
    faculty_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    classroom_id: Mapped[str | None] = mapped_column(ForeignKey("classrooms.id"), nullable=True)
    duty_date: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    campus: Mapped[str] = mapped_column(String(100), nullable=False)
    department: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[DutyStatus] = mapped_column(
        SAEnum(DutyStatus, name="duty_status"),
        nullable=False,
        default=DutyStatus.pending,
        index=True,
    )
    notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    exam: Mapped[Exam] = relationship(lazy="joined")
    faculty: Mapped[User] = relationship(lazy="joined")
    classroom: Mapped[Classroom | None] = relationship(lazy="joined")
    acknowledgment: Mapped[AcknowledgmentState] = relationship(
        lazy="joined",
        uselist=False,
        cascade="all, delete-orphan",
    )
    live_status: Mapped[LiveStatus] = relationship(
        lazy="joined",
        uselist=False,
        cascade="all, delete-orphan",
    )
    reserved_faculty: Mapped[list[ReservedFacultyEntry]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by=(ReservedFacultyEntry.priority, ReservedFacultyEntry.faculty_id),
    )
