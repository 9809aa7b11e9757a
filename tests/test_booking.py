"""
Tests for slotwise/services/booking.py - validation, create, update/reschedule, cancel.
"""
import uuid
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from slotwise.models.appointment import Appointment
from slotwise.models.appointment_event import AppointmentEvent
from slotwise.models.service import Service
from slotwise.services.availability import upsert_availability
from slotwise.services.booking import (
    ALREADY_BOOKED,
    NOT_AVAILABLE,
    BookingDecision,
    cancel_appointment,
    create_appointment,
    get_appointment,
    list_appointments,
    update_appointment,
    validate_booking,
)
from slotwise.utils.errors import BookingRejectedError, NotFoundError, SlotConflictError

MONDAY = date(2030, 1, 7)
NEXT_MONDAY = date(2030, 1, 14)


@pytest.fixture
async def monday_hours(db, business):
    window, _ = await upsert_availability(db, business.id, day=1, start_time="09:00", end_time="12:00")
    await db.commit()
    return window


async def _events(db, appointment_id):
    result = await db.execute(
        select(AppointmentEvent).where(AppointmentEvent.appointment_id == appointment_id)
    )
    return list(result.scalars().all())


class TestBookingDecision:
    def test_truthiness(self):
        assert BookingDecision(True)
        assert not BookingDecision(False, "nope")
        assert "REJECTED" in repr(BookingDecision(False, "nope"))


class TestValidateBooking:
    async def test_accepts_slot_inside_window(self, db, business, service, monday_hours):
        decision = await validate_booking(db, business.id, service.id, MONDAY, "09:00", "09:30")
        assert decision.ok

    async def test_rejects_outside_window(self, db, business, service, monday_hours):
        decision = await validate_booking(db, business.id, service.id, MONDAY, "12:00", "12:30")
        assert not decision.ok
        assert decision.reason == NOT_AVAILABLE

    async def test_rejects_interval_crossing_window_end(self, db, business, service, monday_hours):
        decision = await validate_booking(db, business.id, service.id, MONDAY, "11:45", "12:15")
        assert decision.reason == NOT_AVAILABLE

    async def test_rejects_duplicate_start(self, db, business, customer, service, monday_hours):
        await create_appointment(db, customer.id, service.id, MONDAY, "10:00", "10:30")
        decision = await validate_booking(db, business.id, service.id, MONDAY, "10:00", "10:30")
        assert decision.reason == ALREADY_BOOKED

    async def test_excludes_own_appointment(self, db, business, customer, service, monday_hours):
        appointment = await create_appointment(db, customer.id, service.id, MONDAY, "10:00", "10:30")
        decision = await validate_booking(
            db, business.id, service.id, MONDAY, "10:00", "10:30",
            exclude_appointment_id=appointment.id,
        )
        assert decision.ok

    async def test_start_must_precede_end(self, db, business, service, monday_hours):
        decision = await validate_booking(db, business.id, service.id, MONDAY, "10:30", "10:00")
        assert not decision.ok

    async def test_malformed_time(self, db, business, service, monday_hours):
        decision = await validate_booking(db, business.id, service.id, MONDAY, "10am", "10:30")
        assert not decision.ok

    async def test_duration_must_match_service(self, db, business, service, monday_hours):
        decision = await validate_booking(db, business.id, service.id, MONDAY, "10:00", "11:00")
        assert not decision.ok
        assert "duration" in decision.reason

    async def test_service_of_other_business(self, db, business, service, monday_hours):
        decision = await validate_booking(db, uuid.uuid4(), service.id, MONDAY, "10:00", "10:30")
        assert not decision.ok

    async def test_unknown_service(self, db, business, monday_hours):
        with pytest.raises(NotFoundError):
            await validate_booking(db, business.id, uuid.uuid4(), MONDAY, "10:00", "10:30")

    async def test_default_window_applies_without_rows(self, db, business, service):
        decision = await validate_booking(db, business.id, service.id, MONDAY, "16:30", "17:00")
        assert decision.ok
        decision = await validate_booking(db, business.id, service.id, MONDAY, "17:00", "17:30")
        assert decision.reason == NOT_AVAILABLE


class TestCreateAppointment:
    async def test_books_scheduled_and_notifies(self, db, business, customer, service, monday_hours, notifier):
        appointment = await create_appointment(
            db, customer.id, service.id, MONDAY, "09:30", "10:00", notes="First visit",
        )
        assert appointment.status == "scheduled"
        assert appointment.business_id == business.id
        assert appointment.reminder_sent is False
        assert appointment.auto_cancelled is False

        events = await _events(db, appointment.id)
        assert [e.action for e in events] == ["created"]
        # customer + business
        assert notifier.pending == 2

    async def test_demo_business_gets_no_message(self, db, business, customer, service, monday_hours, notifier):
        business.is_demo = True
        await db.commit()
        await create_appointment(db, customer.id, service.id, MONDAY, "09:30", "10:00")
        assert notifier.pending == 1

    async def test_rejected_slot_raises(self, db, customer, service, monday_hours):
        with pytest.raises(BookingRejectedError) as exc:
            await create_appointment(db, customer.id, service.id, MONDAY, "13:00", "13:30")
        assert exc.value.reason == NOT_AVAILABLE

    async def test_unknown_customer(self, db, service, monday_hours):
        with pytest.raises(NotFoundError):
            await create_appointment(db, uuid.uuid4(), service.id, MONDAY, "09:00", "09:30")

    async def test_inactive_service(self, db, customer, service, monday_hours):
        service.active = False
        await db.commit()
        with pytest.raises(NotFoundError):
            await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")

    async def test_storage_conflict_raises(self, db, customer, service, monday_hours):
        customer_id, service_id = customer.id, service.id
        await create_appointment(db, customer_id, service_id, MONDAY, "09:00", "09:30")

        # Simulate a racing request that passed validation before the first insert
        with patch(
            "slotwise.services.booking.validate_booking",
            new_callable=AsyncMock,
            return_value=BookingDecision(True),
        ):
            with pytest.raises(SlotConflictError):
                await create_appointment(db, customer_id, service_id, MONDAY, "09:00", "09:30")

        result = await db.execute(select(Appointment))
        assert len(result.scalars().all()) == 1

    async def test_cancel_then_rebook(self, db, customer, service, monday_hours):
        first = await create_appointment(db, customer.id, service.id, MONDAY, "11:00", "11:30")
        await cancel_appointment(db, first.id)
        second = await create_appointment(db, customer.id, service.id, MONDAY, "11:00", "11:30")
        assert second.id != first.id
        assert second.status == "scheduled"


class TestUpdateAppointment:
    async def test_status_only_update_skips_availability(self, db, customer, service, monday_hours):
        appointment = await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")
        monday_hours.is_available = False
        await db.commit()

        updated = await update_appointment(db, appointment.id, status="completed", actor="business")
        assert updated.status == "completed"
        events = await _events(db, appointment.id)
        assert events[-1].action == "status_changed"
        assert events[-1].from_status == "scheduled"
        assert events[-1].actor == "business"

    async def test_setting_scheduled_clears_auto_cancelled(self, db, customer, service, monday_hours):
        appointment = await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")
        appointment.status = "missed"
        appointment.auto_cancelled = True
        await db.commit()

        updated = await update_appointment(db, appointment.id, status="scheduled")
        assert updated.status == "scheduled"
        assert updated.auto_cancelled is False

    async def test_manual_missed_is_not_recoverable(self, db, customer, service, monday_hours):
        appointment = await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")
        appointment.status = "missed"
        appointment.auto_cancelled = True
        await db.commit()

        updated = await update_appointment(db, appointment.id, status="missed", actor="business")
        assert updated.status == "missed"
        assert updated.auto_cancelled is False

    async def test_reschedule_rearms_reminders(self, db, customer, service, monday_hours):
        appointment = await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")
        appointment.reminder_sent = True
        appointment.notification_sent = True
        await db.commit()

        updated = await update_appointment(
            db, appointment.id, appointment_date=NEXT_MONDAY, start_time="10:00", end_time="10:30",
        )
        assert updated.status == "rescheduled"
        assert updated.appointment_date == NEXT_MONDAY
        assert (updated.start_time, updated.end_time) == ("10:00", "10:30")
        assert updated.reminder_sent is False
        assert updated.notification_sent is False

    async def test_reschedule_to_taken_slot_rejected(self, db, customer, service, monday_hours):
        await create_appointment(db, customer.id, service.id, MONDAY, "10:00", "10:30")
        other = await create_appointment(db, customer.id, service.id, MONDAY, "11:00", "11:30")
        with pytest.raises(BookingRejectedError) as exc:
            await update_appointment(db, other.id, start_time="10:00", end_time="10:30")
        assert exc.value.reason == ALREADY_BOOKED

        unchanged = await get_appointment(db, other.id)
        assert unchanged.start_time == "11:00"

    async def test_notes_only_update(self, db, customer, service, monday_hours):
        appointment = await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")
        updated = await update_appointment(db, appointment.id, notes="Bring photos")
        assert updated.notes == "Bring photos"
        assert updated.status == "scheduled"

    async def test_change_to_longer_service_validates_duration(self, db, business, customer, service, monday_hours):
        longer = Service(
            id=uuid.uuid4(), business_id=business.id, name="Coloring", duration=90, active=True,
        )
        db.add(longer)
        await db.commit()
        appointment = await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")

        with pytest.raises(BookingRejectedError):
            await update_appointment(db, appointment.id, service_id=longer.id)

        updated = await update_appointment(db, appointment.id, service_id=longer.id, end_time="10:30")
        assert updated.service_id == longer.id
        assert updated.status == "scheduled"

    async def test_unknown_appointment(self, db):
        with pytest.raises(NotFoundError):
            await update_appointment(db, uuid.uuid4(), status="completed")


class TestCancelAndList:
    async def test_cancel_is_idempotent(self, db, customer, service, monday_hours, notifier):
        appointment = await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")
        await notifier.drain()

        await cancel_appointment(db, appointment.id)
        await cancel_appointment(db, appointment.id)
        assert (await get_appointment(db, appointment.id)).status == "cancelled"
        assert notifier.pending == 2
        assert [e.action for e in await _events(db, appointment.id)] == ["created", "cancelled"]

    async def test_list_filters(self, db, business, customer, service, monday_hours):
        await create_appointment(db, customer.id, service.id, MONDAY, "09:00", "09:30")
        second = await create_appointment(db, customer.id, service.id, MONDAY, "09:30", "10:00")
        await cancel_appointment(db, second.id)

        assert len(await list_appointments(db, business_id=business.id)) == 2
        scheduled = await list_appointments(db, user_id=customer.id, status="scheduled")
        assert [a.start_time for a in scheduled] == ["09:00"]
        assert await list_appointments(db, appointment_date=NEXT_MONDAY) == []
