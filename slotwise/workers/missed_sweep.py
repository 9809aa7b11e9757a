"""
Missed-with-grace sweep - runs every 5 minutes.

A scheduled appointment becomes missed once its start time plus the grace
period has passed, or once its date is in the past. auto_cancelled is left
alone: a same-day no-show is not something the recovery sweep should undo.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, and_

from slotwise.database import async_session_factory
from slotwise.models.appointment import Appointment
from slotwise.services.appointment_history import record_event
from slotwise.services.appointment_notifications import notify_parties
from slotwise.utils.timezone import get_zoneinfo, local_datetime, local_now

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 300  # 5 minutes
GRACE_PERIOD_MINUTES = 15
BATCH_LIMIT = 200


def is_past_grace(appointment: Appointment, now_local: datetime, tz: ZoneInfo) -> bool:
    """True when the no-show tolerance for this appointment has run out."""
    today: date = now_local.date()
    if appointment.appointment_date < today:
        return True
    if appointment.appointment_date > today:
        return False
    start = local_datetime(appointment.appointment_date, appointment.start_time, tz)
    return now_local > start + timedelta(minutes=GRACE_PERIOD_MINUTES)


def grace_minutes_remaining(appointment: Appointment, now_local: datetime, tz: ZoneInfo) -> float:
    """Minutes left before the appointment would be marked missed (not persisted)."""
    start = local_datetime(appointment.appointment_date, appointment.start_time, tz)
    deadline = start + timedelta(minutes=GRACE_PERIOD_MINUTES)
    return max(0.0, (deadline - now_local) / timedelta(minutes=1))


async def mark_missed_appointments(
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> int:
    """Mark scheduled appointments past their grace period as missed. Returns count."""
    tz = tz or get_zoneinfo()
    now_local = local_now(tz, now)
    marked = 0

    async with async_session_factory() as db:
        result = await db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.status == "scheduled",
                    Appointment.appointment_date <= now_local.date(),
                )
            )
            .order_by(Appointment.appointment_date, Appointment.start_time)
            .limit(BATCH_LIMIT)
        )
        candidates = result.scalars().all()

        due = []
        for appointment in candidates:
            try:
                if is_past_grace(appointment, now_local, tz):
                    due.append(appointment)
            except ValueError as e:
                logger.warning(
                    "Skipping appointment with bad start time: %s", str(e),
                    extra={"appointment_id": str(appointment.id), "sweep": "missed_sweep"},
                )

        for appointment in due:
            appointment.status = "missed"
            record_event(
                db, appointment, "missed", from_status="scheduled",
                message=f"No-show after {GRACE_PERIOD_MINUTES} minute grace period",
            )
            await db.commit()
            marked += 1

            logger.info(
                "Marked missed: %s %s",
                appointment.appointment_date.isoformat(), appointment.start_time,
                extra={"appointment_id": str(appointment.id), "sweep": "missed_sweep"},
            )
            await notify_parties(db, appointment, "missed")

    return marked
