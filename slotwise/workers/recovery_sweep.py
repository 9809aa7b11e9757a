"""
Recovery sweep - runs once at process start (and on demand via the API).

Restores appointments the expiry sweep marked missed (auto_cancelled=True)
whose real start time is still in the future. That only happens when "today"
was judged in the wrong timezone, so a non-zero count raises a warning alert.
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
from slotwise.utils.alerting import send_alert, AlertType
from slotwise.utils.timezone import get_zoneinfo, local_datetime, local_now

logger = logging.getLogger(__name__)


async def restore_future_appointments(
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> int:
    """Undo auto-missed transitions for appointments that have not started yet."""
    tz = tz or get_zoneinfo()
    now_local = local_now(tz, now)
    restored = 0

    async with async_session_factory() as db:
        result = await db.execute(
            select(Appointment).where(
                and_(
                    Appointment.status == "missed",
                    Appointment.auto_cancelled == True,  # noqa: E712
                    Appointment.appointment_date >= now_local.date(),
                )
            )
        )
        candidates = result.scalars().all()

        for appointment in candidates:
            try:
                start = local_datetime(appointment.appointment_date, appointment.start_time, tz)
            except ValueError as e:
                logger.warning(
                    "Skipping appointment with bad start time: %s", str(e),
                    extra={"appointment_id": str(appointment.id), "sweep": "recovery_sweep"},
                )
                continue
            if start <= now_local:
                continue

            appointment.status = "scheduled"
            appointment.auto_cancelled = False
            record_event(
                db, appointment, "restored", from_status="missed",
                message="Auto-missed appointment restored: start time is still in the future",
            )
            await db.commit()
            restored += 1
            await notify_parties(db, appointment, "restored")

    if restored:
        logger.warning("Restored %d future appointments wrongly marked missed", restored)
        await send_alert(
            AlertType.RECOVERY_RESTORED,
            f"Restored {restored} future appointments wrongly marked missed; check APP_TIMEZONE",
            severity="warning",
        )
    return restored
