from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class LiveStatusValue(str, Enum):
    none = "none"
    present = "present"
    on_the_way = "on_the_way"
    unable_to_reach = "unable_to_reach"


class LiveStatus(Base):
    __tablename__ = "duty_live_statuses"

    assignment_id: Mapped[str] = mapped_column(ForeignKey("duty_assignments.id"), primary_key=True)
    status: Mapped[LiveStatusValue] = mapped_column(
        SAEnum(LiveStatusValue, name="live_status_value"),
        nullable=False,
        default=LiveStatusValue.none,
    )
    eta: Mapped[str | None] = mapped_column(String(100), nullable=True)
    emergency_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reported_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    opens_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closes_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
