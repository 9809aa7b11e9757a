"""
Expiry sweep - runs hourly.

Any appointment still open (not cancelled, completed or missed) whose date
is before today is marked missed with auto_cancelled=True. The flag is what
lets the recovery sweep undo the transition if the date was misjudged.
"""
import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, and_

from slotwise.database import async_session_factory
from slotwise.models.appointment import Appointment
from slotwise.services.appointment_history import record_event
from slotwise.services.appointment_notifications import notify_parties
from slotwise.utils.timezone import get_zoneinfo, local_today

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 3600  # 1 hour
BATCH_LIMIT = 200

CLOSED_STATUSES = ("cancelled", "completed", "missed")


async def expire_past_appointments(
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> int:
    """Mark open appointments from previous days as missed. Returns count."""
    tz = tz or get_zoneinfo()
    today = local_today(tz, now)
    expired = 0

    async with async_session_factory() as db:
        result = await db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.status.notin_(CLOSED_STATUSES),
                    Appointment.appointment_date < today,
                )
            )
            .order_by(Appointment.appointment_date)
            .limit(BATCH_LIMIT)
        )
        appointments = result.scalars().all()

        for appointment in appointments:
            previous_status = appointment.status
            appointment.status = "missed"
            appointment.auto_cancelled = True
            record_event(
                db, appointment, "auto_missed", from_status=previous_status,
                message=f"Date {appointment.appointment_date.isoformat()} passed before {today.isoformat()}",
            )
            await db.commit()
            expired += 1

            logger.info(
                "Expired appointment from %s (%s -> missed)",
                appointment.appointment_date.isoformat(), previous_status,
                extra={"appointment_id": str(appointment.id), "sweep": "expiry_sweep"},
            )
            await notify_parties(db, appointment, "expired")

    return expired
