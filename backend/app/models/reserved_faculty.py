import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class ReservedFacultyStatus(str, Enum):
    available = "available"
    assigned = "assigned"
    declined = "declined"


class ReservedFacultyEntry(Base):
    __tablename__ = "reserved_faculty_entries"
    __table_args__ = (
        UniqueConstraint("assignment_id", "faculty_id", name="uq_reserved_faculty_identity"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    assignment_id: Mapped[str] = mapped_column(ForeignKey("duty_assignments.id"), nullable=False, index=True)
    faculty_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[ReservedFacultyStatus] = mapped_column(
        SAEnum(ReservedFacultyStatus, name="reserved_faculty_status"),
        nullable=False,
        default=ReservedFacultyStatus.available,
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
