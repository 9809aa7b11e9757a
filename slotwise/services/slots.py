"""
Slot generator - bookable time windows for one business on one date.
Recomputed on every call; the only side effect is the one-time default
window synthesis in resolve_windows().
"""
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from slotwise.models.appointment import Appointment
from slotwise.services.availability import require_business, resolve_windows
from slotwise.utils.timezone import (
    get_zoneinfo,
    hhmm_to_minutes,
    local_datetime,
    local_now,
    minutes_to_hhmm,
)

logger = logging.getLogger(__name__)

# Fixed grid, independent of service duration
SLOT_INCREMENT_MINUTES = 30
# A customer may not book a slot starting sooner than this
BOOKING_BUFFER_MINUTES = 15


class TimeSlot:
    """Represents an available appointment time slot."""

    def __init__(self, start_time: str, end_time: str):
        self.start_time = start_time
        self.end_time = end_time

    def __repr__(self) -> str:
        return f"<TimeSlot {self.start_time}-{self.end_time}>"

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, TimeSlot)
            and self.start_time == other.start_time
            and self.end_time == other.end_time
        )

    def __hash__(self) -> int:
        return hash((self.start_time, self.end_time))


def grid_candidates(window_start: str, window_end: str) -> list[TimeSlot]:
    """Every 30-minute slot that fits entirely inside [window_start, window_end]."""
    slots = []
    current = hhmm_to_minutes(window_start)
    end = hhmm_to_minutes(window_end)
    while current + SLOT_INCREMENT_MINUTES <= end:
        slot_end = current + SLOT_INCREMENT_MINUTES
        slots.append(TimeSlot(minutes_to_hhmm(current), minutes_to_hhmm(slot_end)))
        current = slot_end
    return slots


async def booked_start_times(
    db: AsyncSession,
    business_id: uuid.UUID,
    slot_date: date,
    exclude_appointment_id: Optional[uuid.UUID] = None,
) -> set[str]:
    """Start times already taken by non-cancelled appointments."""
    conditions = [
        Appointment.business_id == business_id,
        Appointment.appointment_date == slot_date,
        Appointment.status != "cancelled",
    ]
    if exclude_appointment_id is not None:
        conditions.append(Appointment.id != exclude_appointment_id)
    result = await db.execute(select(Appointment.start_time).where(and_(*conditions)))
    return set(result.scalars().all())


async def generate_slots(
    db: AsyncSession,
    business_id: uuid.UUID,
    slot_date: date,
    tz: Optional[ZoneInfo] = None,
    now: Optional[datetime] = None,
) -> list[TimeSlot]:
    """
    Available slots for `business_id` on `slot_date`, in chronological order.

    Drops slots whose start is already booked (start-time match only) and
    slots starting before now + BOOKING_BUFFER_MINUTES, which also empties
    any date in the past.
    """
    tz = tz or get_zoneinfo()
    current = local_now(tz, now)
    earliest_start = current + timedelta(minutes=BOOKING_BUFFER_MINUTES)

    await require_business(db, business_id)
    windows = await resolve_windows(db, business_id, slot_date)
    taken = await booked_start_times(db, business_id, slot_date)

    slots: list[TimeSlot] = []
    last_end = -1
    candidates = sorted(
        (slot for window in windows for slot in grid_candidates(window.start_time, window.end_time)),
        key=lambda s: s.start_time,
    )
    for slot in candidates:
        start_minutes = hhmm_to_minutes(slot.start_time)
        # Overlapping windows must not produce overlapping slots
        if start_minutes < last_end:
            continue
        last_end = hhmm_to_minutes(slot.end_time)
        if slot.start_time in taken:
            continue
        if local_datetime(slot_date, slot.start_time, tz) < earliest_start:
            continue
        slots.append(slot)

    logger.debug(
        "Generated %d slots for business %s on %s (%d windows, %d booked)",
        len(slots), str(business_id)[:8], slot_date.isoformat(), len(windows), len(taken),
        extra={"business_id": str(business_id)},
    )
    return slots
