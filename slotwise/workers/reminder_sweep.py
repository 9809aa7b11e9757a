"""
Reminder sweeps.

1. Upcoming reminder (every 5 minutes): scheduled appointments starting 10-15
   minutes from now get one "starting in N minutes" message. With a 5 minute
   interval and a 5 minute band every appointment falls inside the band on
   at least one run; an interval longer than the band would miss some.
2. Day-before reminder (every 30 minutes): scheduled appointments for
   tomorrow get one reminder, guarded by notification_sent.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, and_, or_

from slotwise.database import async_session_factory
from slotwise.models.appointment import Appointment
from slotwise.services.appointment_history import record_event
from slotwise.services.appointment_notifications import notify_parties
from slotwise.utils.timezone import get_zoneinfo, local_now, minutes_until

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 300  # 5 minutes
DAY_BEFORE_POLL_INTERVAL_SECONDS = 1800  # 30 minutes

REMINDER_LEAD_MIN_MINUTES = 10
REMINDER_LEAD_MAX_MINUTES = 15

BATCH_LIMIT = 200


def in_reminder_band(minutes_to_start: float) -> bool:
    return REMINDER_LEAD_MIN_MINUTES <= minutes_to_start <= REMINDER_LEAD_MAX_MINUTES


def reminder_band_clause(now_local: datetime):
    """
    SQL filter for start times that can fall inside the band. Split per date
    so a band crossing midnight also matches tomorrow's earliest slots.
    "HH:MM" strings sort chronologically, so string bounds work.
    """
    earliest = now_local + timedelta(minutes=REMINDER_LEAD_MIN_MINUTES)
    latest = now_local + timedelta(minutes=REMINDER_LEAD_MAX_MINUTES)
    clauses = []
    for day in sorted({earliest.date(), latest.date()}):
        low = earliest.strftime("%H:%M") if day == earliest.date() else "00:00"
        high = latest.strftime("%H:%M") if day == latest.date() else "23:59"
        clauses.append(
            and_(
                Appointment.appointment_date == day,
                Appointment.start_time >= low,
                Appointment.start_time <= high,
            )
        )
    return or_(*clauses)


async def send_upcoming_reminders(
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> int:
    """Remind both parties of appointments starting 10-15 minutes from now."""
    tz = tz or get_zoneinfo()
    now_local = local_now(tz, now)
    sent = 0

    async with async_session_factory() as db:
        result = await db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.status == "scheduled",
                    or_(Appointment.reminder_sent == False, Appointment.reminder_sent.is_(None)),  # noqa: E712
                    reminder_band_clause(now_local),
                )
            )
            .order_by(Appointment.appointment_date, Appointment.start_time)
            .limit(BATCH_LIMIT)
        )
        candidates = result.scalars().all()

        for appointment in candidates:
            try:
                lead = minutes_until(appointment.appointment_date, appointment.start_time, tz, now_local)
            except ValueError as e:
                logger.warning(
                    "Skipping appointment with bad start time: %s", str(e),
                    extra={"appointment_id": str(appointment.id), "sweep": "reminder_sweep"},
                )
                continue
            if not in_reminder_band(lead):
                continue

            appointment.reminder_sent = True
            minutes = int(round(lead))
            record_event(
                db, appointment, "reminder_sent", from_status=appointment.status,
                message=f"Starting in {minutes} minutes",
            )
            await db.commit()
            sent += 1
            await notify_parties(db, appointment, "reminder", minutes=minutes)

    return sent


async def send_day_before_reminders(
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> int:
    """Remind both parties of tomorrow's scheduled appointments, once."""
    tz = tz or get_zoneinfo()
    tomorrow = local_now(tz, now).date() + timedelta(days=1)
    sent = 0

    async with async_session_factory() as db:
        result = await db.execute(
            select(Appointment)
            .where(
                and_(
                    Appointment.status == "scheduled",
                    Appointment.appointment_date == tomorrow,
                    Appointment.notification_sent == False,  # noqa: E712
                )
            )
            .limit(BATCH_LIMIT)
        )
        appointments = result.scalars().all()

        for appointment in appointments:
            appointment.notification_sent = True
            record_event(db, appointment, "day_before_reminder_sent", from_status=appointment.status)
            await db.commit()
            sent += 1
            await notify_parties(db, appointment, "day_before")

    return sent
