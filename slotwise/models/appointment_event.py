"""
Appointment event model - status history for every appointment mutation.
Written in the same transaction as the change it records.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from slotwise.database import Base


class AppointmentEvent(Base):
    __tablename__ = "appointment_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("appointments.id"), nullable=False
    )

    action: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # created, rescheduled, status_changed, cancelled, auto_missed, missed, restored, reminder_sent, ...
    from_status: Mapped[Optional[str]] = mapped_column(String(20))
    to_status: Mapped[Optional[str]] = mapped_column(String(20))
    actor: Mapped[str] = mapped_column(String(20), default="system")  # customer, business, system

    message: Mapped[Optional[str]] = mapped_column(Text)
    data: Mapped[Optional[dict]] = mapped_column(JSONB)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_appointment_events_appointment_id", "appointment_id"),
        Index("ix_appointment_events_action", "action"),
    )

    def __repr__(self) -> str:
        return f"<AppointmentEvent {self.action} {self.from_status}->{self.to_status}>"
