"""
Availability store - business-declared booking windows.

Resolution rule for one calendar date:
1. Rows for that exact specific_date win over recurring rows for its weekday.
2. Otherwise the recurring row for the weekday applies.
3. A matching row with is_available=False closes the date (carve-out).
4. A business with no row at all for the date gets a default 09:00-17:00
   recurring window (first-run convenience for new businesses).
"""
import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from slotwise.models.availability import AvailabilityWindow
from slotwise.models.user import User
from slotwise.utils.errors import NotFoundError, BookingRejectedError
from slotwise.utils.timezone import day_of_week, hhmm_to_minutes

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_START = "09:00"
DEFAULT_WINDOW_END = "17:00"


async def require_business(db: AsyncSession, business_id: uuid.UUID) -> User:
    business = await db.get(User, business_id)
    if not business:
        raise NotFoundError("Business", business_id)
    return business


async def list_business_availability(
    db: AsyncSession, business_id: uuid.UUID,
) -> list[AvailabilityWindow]:
    """All available windows of a business, ordered by weekday then start time."""
    result = await db.execute(
        select(AvailabilityWindow)
        .where(
            and_(
                AvailabilityWindow.business_id == business_id,
                AvailabilityWindow.is_available == True,  # noqa: E712
            )
        )
        .order_by(AvailabilityWindow.day_of_week, AvailabilityWindow.start_time)
    )
    return list(result.scalars().all())


async def resolve_windows(
    db: AsyncSession,
    business_id: uuid.UUID,
    slot_date: date,
    persist_default: bool = True,
) -> list[AvailabilityWindow]:
    """
    Windows that govern bookings for `slot_date`.

    With persist_default=False the fallback window is returned unsaved, so
    validation sees the same windows slot listing would without writing.
    """
    dow = day_of_week(slot_date)
    result = await db.execute(
        select(AvailabilityWindow).where(
            and_(
                AvailabilityWindow.business_id == business_id,
                or_(
                    and_(
                        AvailabilityWindow.day_of_week == dow,
                        AvailabilityWindow.specific_date.is_(None),
                    ),
                    AvailabilityWindow.specific_date == slot_date,
                ),
            )
        )
    )
    rows = result.scalars().all()

    specific = [w for w in rows if w.specific_date is not None]
    recurring = [w for w in rows if w.specific_date is None]

    if specific:
        return sorted((w for w in specific if w.is_available), key=lambda w: w.start_time)
    if recurring:
        return sorted((w for w in recurring if w.is_available), key=lambda w: w.start_time)

    default = AvailabilityWindow(
        id=uuid.uuid4(),
        business_id=business_id,
        day_of_week=dow,
        specific_date=None,
        start_time=DEFAULT_WINDOW_START,
        end_time=DEFAULT_WINDOW_END,
        is_available=True,
    )
    if persist_default:
        db.add(default)
        await db.flush()
        logger.info(
            "No availability for business %s on day %d, created default %s-%s window",
            str(business_id)[:8], dow, DEFAULT_WINDOW_START, DEFAULT_WINDOW_END,
            extra={"business_id": str(business_id)},
        )
    return [default]


async def upsert_availability(
    db: AsyncSession,
    business_id: uuid.UUID,
    day: Optional[int] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    is_available: Optional[bool] = None,
    specific_date: Optional[date] = None,
) -> tuple[AvailabilityWindow, bool]:
    """
    Create or update the single window for (business, day, specific_date).
    Returns (window, created).
    """
    await require_business(db, business_id)

    if specific_date is not None:
        day = day_of_week(specific_date)
    if day is None:
        raise BookingRejectedError("day_of_week or specific_date is required")

    date_clause = (
        AvailabilityWindow.specific_date.is_(None)
        if specific_date is None
        else AvailabilityWindow.specific_date == specific_date
    )
    result = await db.execute(
        select(AvailabilityWindow).where(
            and_(
                AvailabilityWindow.business_id == business_id,
                AvailabilityWindow.day_of_week == day,
                date_clause,
            )
        ).limit(1)
    )
    window = result.scalar_one_or_none()

    if window:
        new_start = start_time or window.start_time
        new_end = end_time or window.end_time
        _check_window_bounds(new_start, new_end)
        window.start_time = new_start
        window.end_time = new_end
        if is_available is not None:
            window.is_available = is_available
        await db.flush()
        return window, False

    if not start_time or not end_time:
        raise BookingRejectedError("start_time and end_time are required for a new window")
    _check_window_bounds(start_time, end_time)

    window = AvailabilityWindow(
        business_id=business_id,
        day_of_week=day,
        specific_date=specific_date,
        start_time=start_time,
        end_time=end_time,
        is_available=True if is_available is None else is_available,
    )
    db.add(window)
    await db.flush()
    return window, True


async def delete_availability(db: AsyncSession, window_id: uuid.UUID) -> None:
    window = await db.get(AvailabilityWindow, window_id)
    if not window:
        raise NotFoundError("Availability", window_id)
    await db.delete(window)
    await db.flush()


def window_covers(window: AvailabilityWindow, start_time: str, end_time: str) -> bool:
    """True when [start_time, end_time] lies inside the window."""
    return (
        hhmm_to_minutes(window.start_time) <= hhmm_to_minutes(start_time)
        and hhmm_to_minutes(window.end_time) >= hhmm_to_minutes(end_time)
    )


def _check_window_bounds(start_time: str, end_time: str) -> None:
    try:
        start = hhmm_to_minutes(start_time)
        end = hhmm_to_minutes(end_time)
    except ValueError as e:
        raise BookingRejectedError(str(e)) from e
    if start >= end:
        raise BookingRejectedError("start_time must be before end_time")
