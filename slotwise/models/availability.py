"""
Availability window model - when a business accepts bookings.

A row is either recurring (specific_date is NULL, applies every `day_of_week`)
or an override for one calendar date. `is_available=False` is a carve-out
(holiday, closed day), not a deletion.
"""
import uuid
from datetime import datetime, timezone, date
from typing import Optional
from sqlalchemy import String, Boolean, Integer, Date, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from slotwise.database import Base


class AvailabilityWindow(Base):
    __tablename__ = "availability_windows"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    specific_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Business-local wall clock, "HH:MM" 24-hour
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)

    is_available: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_day_of_week"),
        Index("ix_availability_business_day", "business_id", "day_of_week"),
        Index("ix_availability_business_date", "business_id", "specific_date"),
    )

    def __repr__(self) -> str:
        when = self.specific_date.isoformat() if self.specific_date else f"dow={self.day_of_week}"
        return f"<AvailabilityWindow {when} {self.start_time}-{self.end_time} available={self.is_available}>"
