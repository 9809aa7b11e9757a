"""
Appointment model - one booking and its lifecycle flags.

The partial unique index turns two concurrent bookings of the same start time
into a write conflict instead of a silent double-book. Cancelled rows are
excluded so a cancelled slot can be rebooked.
"""
import uuid
from datetime import datetime, timezone, date
from typing import Optional
from sqlalchemy import String, Text, Boolean, Date, DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from slotwise.database import Base

_ACTIVE_SLOT_PREDICATE = text("status <> 'cancelled'")


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    business_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("services.id"), nullable=False
    )

    # Appointment details (business-local, "HH:MM")
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    status: Mapped[str] = mapped_column(
        String(20), default="scheduled"
    )  # scheduled, completed, cancelled, rescheduled, missed

    # Duplicate-message guards across sweep runs
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False)  # day-before reminder
    reminder_sent: Mapped[bool] = mapped_column(Boolean, default=False)  # minutes-before reminder

    # True only when the expiry sweep (not a person) set status=missed
    auto_cancelled: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index(
            "uq_appointments_active_slot",
            "business_id", "appointment_date", "start_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_PREDICATE,
            sqlite_where=_ACTIVE_SLOT_PREDICATE,
        ),
        Index("ix_appointments_user_id", "user_id"),
        Index("ix_appointments_status_date", "status", "appointment_date"),
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.appointment_date} {self.start_time}-{self.end_time} status={self.status}>"
