"""
Booking validator and appointment mutations (create, update/reschedule, cancel).

Validation uses the same windows the slot generator resolves. The collision
check compares start times only, so two different-length services starting at
different but overlapping times are not detected. The partial unique index on
appointments backs up the start-time check when two requests race.
"""
import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from slotwise.models.appointment import Appointment
from slotwise.models.service import Service
from slotwise.models.user import User
from slotwise.services.appointment_history import record_event
from slotwise.services.appointment_notifications import notify_parties
from slotwise.services.availability import resolve_windows, window_covers
from slotwise.services.slots import booked_start_times
from slotwise.utils.errors import BookingRejectedError, NotFoundError, SlotConflictError
from slotwise.utils.timezone import hhmm_to_minutes

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "This time slot is not available"
ALREADY_BOOKED = "This time slot is already booked"


class BookingDecision:
    """Result of a booking validation."""

    def __init__(self, ok: bool, reason: str = ""):
        self.ok = ok
        self.reason = reason

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        status = "OK" if self.ok else "REJECTED"
        return f"<BookingDecision {status}: {self.reason}>"


async def validate_booking(
    db: AsyncSession,
    business_id: uuid.UUID,
    service_id: uuid.UUID,
    appointment_date: date,
    start_time: str,
    end_time: str,
    exclude_appointment_id: Optional[uuid.UUID] = None,
) -> BookingDecision:
    """
    Decide whether [start_time, end_time] on appointment_date can be booked.

    Checks, in order: times parse and are ordered, the service belongs to the
    business and its duration matches, a window covers the interval, and no
    non-cancelled appointment starts at the same time.
    """
    try:
        start = hhmm_to_minutes(start_time)
        end = hhmm_to_minutes(end_time)
    except ValueError as e:
        return BookingDecision(False, str(e))
    if start >= end:
        return BookingDecision(False, "start_time must be before end_time")

    service = await db.get(Service, service_id)
    if not service or not service.active:
        raise NotFoundError("Service", service_id)
    if service.business_id != business_id:
        return BookingDecision(False, "Service does not belong to this business")
    if end - start != service.duration:
        return BookingDecision(
            False, f"Appointment length must match the service duration ({service.duration} minutes)"
        )

    windows = await resolve_windows(db, business_id, appointment_date, persist_default=False)
    if not any(window_covers(w, start_time, end_time) for w in windows):
        return BookingDecision(False, NOT_AVAILABLE)

    taken = await booked_start_times(db, business_id, appointment_date, exclude_appointment_id)
    if start_time in taken:
        return BookingDecision(False, ALREADY_BOOKED)

    return BookingDecision(True)


async def _commit_or_conflict(db: AsyncSession) -> None:
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Booking write conflict: %s", str(e.orig) if e.orig else str(e))
        raise SlotConflictError() from e


async def get_appointment(db: AsyncSession, appointment_id: uuid.UUID) -> Appointment:
    appointment = await db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment", appointment_id)
    return appointment


async def list_appointments(
    db: AsyncSession,
    user_id: Optional[uuid.UUID] = None,
    business_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    appointment_date: Optional[date] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Appointment]:
    conditions = []
    if user_id:
        conditions.append(Appointment.user_id == user_id)
    if business_id:
        conditions.append(Appointment.business_id == business_id)
    if status:
        conditions.append(Appointment.status == status)
    if appointment_date:
        conditions.append(Appointment.appointment_date == appointment_date)

    query = select(Appointment)
    if conditions:
        query = query.where(and_(*conditions))
    result = await db.execute(
        query.order_by(Appointment.appointment_date, Appointment.start_time)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def create_appointment(
    db: AsyncSession,
    user_id: uuid.UUID,
    service_id: uuid.UUID,
    appointment_date: date,
    start_time: str,
    end_time: str,
    notes: Optional[str] = None,
) -> Appointment:
    """Validate and book a new appointment with status=scheduled."""
    customer = await db.get(User, user_id)
    if not customer:
        raise NotFoundError("User", user_id)
    service = await db.get(Service, service_id)
    if not service or not service.active:
        raise NotFoundError("Service", service_id)

    decision = await validate_booking(
        db, service.business_id, service.id, appointment_date, start_time, end_time,
    )
    if not decision:
        raise BookingRejectedError(decision.reason)

    appointment = Appointment(
        id=uuid.uuid4(),
        user_id=user_id,
        business_id=service.business_id,
        service_id=service.id,
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        notes=notes,
        status="scheduled",
        notification_sent=False,
        reminder_sent=False,
        auto_cancelled=False,
    )
    db.add(appointment)
    record_event(db, appointment, "created", actor="customer")
    await _commit_or_conflict(db)

    logger.info(
        "Appointment booked for %s %s-%s",
        appointment_date.isoformat(), start_time, end_time,
        extra={"appointment_id": str(appointment.id), "business_id": str(service.business_id)},
    )
    await notify_parties(db, appointment, "booked")
    return appointment


async def update_appointment(
    db: AsyncSession,
    appointment_id: uuid.UUID,
    status: Optional[str] = None,
    appointment_date: Optional[date] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    service_id: Optional[uuid.UUID] = None,
    notes: Optional[str] = None,
    actor: str = "customer",
) -> Appointment:
    """
    Apply a status change, a reschedule, or a plain field update.

    A status-only update skips availability checks. Any change of date,
    start, end or service is re-validated against the new values (excluding
    this appointment from the collision check). A new date or start time sets
    status=rescheduled and re-arms both reminders.
    """
    appointment = await get_appointment(db, appointment_id)
    previous_status = appointment.status

    time_fields_changed = any(
        v is not None for v in (appointment_date, start_time, end_time, service_id)
    )

    if status is not None and not time_fields_changed and notes is None:
        appointment.status = status
        # A person decided this status; the recovery sweep must not undo it
        appointment.auto_cancelled = False
        record_event(
            db, appointment, "status_changed", from_status=previous_status, actor=actor,
        )
        await _commit_or_conflict(db)
        logger.info(
            "Appointment status %s -> %s", previous_status, status,
            extra={"appointment_id": str(appointment.id)},
        )
        await notify_parties(db, appointment, "status_changed")
        return appointment

    if time_fields_changed:
        new_date = appointment_date or appointment.appointment_date
        new_start = start_time or appointment.start_time
        new_end = end_time or appointment.end_time
        new_service_id = service_id or appointment.service_id

        decision = await validate_booking(
            db, appointment.business_id, new_service_id, new_date, new_start, new_end,
            exclude_appointment_id=appointment.id,
        )
        if not decision:
            raise BookingRejectedError(decision.reason)

        appointment.appointment_date = new_date
        appointment.start_time = new_start
        appointment.end_time = new_end
        appointment.service_id = new_service_id

    if status is not None:
        appointment.status = status
        appointment.auto_cancelled = False
    if notes is not None:
        appointment.notes = notes

    rescheduled = appointment_date is not None or start_time is not None
    if rescheduled:
        appointment.status = "rescheduled"
        appointment.reminder_sent = False
        appointment.notification_sent = False

    record_event(
        db, appointment, "rescheduled" if rescheduled else "updated",
        from_status=previous_status, actor=actor,
    )
    await _commit_or_conflict(db)

    logger.info(
        "Appointment updated (rescheduled=%s) to %s %s",
        rescheduled, appointment.appointment_date.isoformat(), appointment.start_time,
        extra={"appointment_id": str(appointment.id)},
    )
    await notify_parties(db, appointment, "updated")
    return appointment


async def cancel_appointment(
    db: AsyncSession,
    appointment_id: uuid.UUID,
    actor: str = "customer",
) -> Appointment:
    """Set status=cancelled. The slot becomes bookable again."""
    appointment = await get_appointment(db, appointment_id)
    if appointment.status == "cancelled":
        return appointment

    previous_status = appointment.status
    appointment.status = "cancelled"
    record_event(db, appointment, "cancelled", from_status=previous_status, actor=actor)
    await db.commit()

    logger.info("Appointment cancelled", extra={"appointment_id": str(appointment.id)})
    await notify_parties(db, appointment, "cancelled")
    return appointment
