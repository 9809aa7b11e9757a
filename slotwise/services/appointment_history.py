"""
Appointment status history - one AppointmentEvent per mutation.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from slotwise.models.appointment import Appointment
from slotwise.models.appointment_event import AppointmentEvent


def record_event(
    db: AsyncSession,
    appointment: Appointment,
    action: str,
    from_status: Optional[str] = None,
    actor: str = "system",
    message: Optional[str] = None,
    data: Optional[dict] = None,
) -> AppointmentEvent:
    """Add a history row in the caller's transaction."""
    event = AppointmentEvent(
        appointment_id=appointment.id,
        action=action,
        from_status=from_status,
        to_status=appointment.status,
        actor=actor,
        message=message,
        data=data,
    )
    db.add(event)
    return event
