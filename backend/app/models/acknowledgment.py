from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class AcknowledgmentStatus(str, Enum):
    pending = "pending"
    acknowledged = "acknowledged"
    unavailable = "unavailable"


class AcknowledgmentState(Base):
    __tablename__ = "duty_acknowledgments"

    assignment_id: Mapped[str] = mapped_column(ForeignKey("duty_assignments.id"), primary_key=True)
    status: Mapped[AcknowledgmentStatus] = mapped_column(
        SAEnum(AcknowledgmentStatus, name="acknowledgment_status"),
        nullable=False,
        default=AcknowledgmentStatus.pending,
        index=True,
    )
    deadline: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_by_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    unavailable_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminder_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
