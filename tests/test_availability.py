"""
Tests for slotwise/services/availability.py - window upsert and date resolution.
"""
import uuid
from datetime import date

import pytest
from sqlalchemy import select

from slotwise.models.availability import AvailabilityWindow
from slotwise.services.availability import (
    DEFAULT_WINDOW_END,
    DEFAULT_WINDOW_START,
    delete_availability,
    list_business_availability,
    resolve_windows,
    upsert_availability,
    window_covers,
)
from slotwise.utils.errors import BookingRejectedError, NotFoundError

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


async def _all_windows(db):
    result = await db.execute(select(AvailabilityWindow))
    return list(result.scalars().all())


class TestUpsertAvailability:
    async def test_creates_recurring_window(self, db, business):
        window, created = await upsert_availability(
            db, business.id, day=1, start_time="09:00", end_time="12:00",
        )
        assert created is True
        assert window.day_of_week == 1
        assert window.specific_date is None
        assert window.is_available is True

    async def test_second_upsert_updates_in_place(self, db, business):
        await upsert_availability(db, business.id, day=1, start_time="09:00", end_time="12:00")
        window, created = await upsert_availability(
            db, business.id, day=1, start_time="10:00", end_time="16:00",
        )
        assert created is False
        assert (window.start_time, window.end_time) == ("10:00", "16:00")
        assert len(await _all_windows(db)) == 1

    async def test_partial_update_keeps_other_fields(self, db, business):
        await upsert_availability(db, business.id, day=2, start_time="09:00", end_time="12:00")
        window, _ = await upsert_availability(db, business.id, day=2, is_available=False)
        assert window.is_available is False
        assert (window.start_time, window.end_time) == ("09:00", "12:00")

    async def test_specific_date_derives_day_of_week(self, db, business):
        window, created = await upsert_availability(
            db, business.id, day=5, specific_date=MONDAY, start_time="13:00", end_time="15:00",
        )
        assert created is True
        assert window.day_of_week == 1
        assert window.specific_date == MONDAY

    async def test_specific_date_and_recurring_are_separate_rows(self, db, business):
        await upsert_availability(db, business.id, day=1, start_time="09:00", end_time="17:00")
        await upsert_availability(
            db, business.id, specific_date=MONDAY, start_time="13:00", end_time="15:00",
        )
        assert len(await _all_windows(db)) == 2

    async def test_start_after_end_rejected(self, db, business):
        with pytest.raises(BookingRejectedError):
            await upsert_availability(db, business.id, day=1, start_time="12:00", end_time="09:00")

    async def test_malformed_time_rejected(self, db, business):
        with pytest.raises(BookingRejectedError):
            await upsert_availability(db, business.id, day=1, start_time="9am", end_time="12:00")

    async def test_new_window_needs_times(self, db, business):
        with pytest.raises(BookingRejectedError):
            await upsert_availability(db, business.id, day=1, start_time="09:00")

    async def test_unknown_business(self, db):
        with pytest.raises(NotFoundError):
            await upsert_availability(db, uuid.uuid4(), day=1, start_time="09:00", end_time="12:00")


class TestListAndDelete:
    async def test_list_sorted_and_available_only(self, db, business):
        await upsert_availability(db, business.id, day=3, start_time="09:00", end_time="12:00")
        await upsert_availability(db, business.id, day=1, start_time="13:00", end_time="17:00")
        await upsert_availability(
            db, business.id, day=2, start_time="09:00", end_time="12:00", is_available=False,
        )
        windows = await list_business_availability(db, business.id)
        assert [w.day_of_week for w in windows] == [1, 3]

    async def test_delete(self, db, business):
        window, _ = await upsert_availability(db, business.id, day=1, start_time="09:00", end_time="12:00")
        await delete_availability(db, window.id)
        assert await _all_windows(db) == []

    async def test_delete_unknown(self, db):
        with pytest.raises(NotFoundError):
            await delete_availability(db, uuid.uuid4())


class TestResolveWindows:
    async def test_default_window_is_synthesized_and_persisted(self, db, business):
        windows = await resolve_windows(db, business.id, MONDAY)
        assert [(w.start_time, w.end_time) for w in windows] == [(DEFAULT_WINDOW_START, DEFAULT_WINDOW_END)]
        stored = await _all_windows(db)
        assert len(stored) == 1
        assert stored[0].day_of_week == 1
        assert stored[0].specific_date is None

    async def test_default_not_persisted_when_asked(self, db, business):
        windows = await resolve_windows(db, business.id, MONDAY, persist_default=False)
        assert len(windows) == 1
        assert await _all_windows(db) == []

    async def test_specific_date_wins_over_recurring(self, db, business):
        await upsert_availability(db, business.id, day=1, start_time="09:00", end_time="17:00")
        await upsert_availability(
            db, business.id, specific_date=MONDAY, start_time="13:00", end_time="15:00",
        )
        windows = await resolve_windows(db, business.id, MONDAY)
        assert [(w.start_time, w.end_time) for w in windows] == [("13:00", "15:00")]

    async def test_specific_date_does_not_leak_to_other_weeks(self, db, business):
        await upsert_availability(db, business.id, day=1, start_time="09:00", end_time="17:00")
        await upsert_availability(
            db, business.id, specific_date=MONDAY, start_time="13:00", end_time="15:00",
        )
        next_monday = date(2030, 1, 14)
        windows = await resolve_windows(db, business.id, next_monday)
        assert [(w.start_time, w.end_time) for w in windows] == [("09:00", "17:00")]

    async def test_carve_out_closes_the_date_without_default(self, db, business):
        await upsert_availability(
            db, business.id, specific_date=MONDAY, start_time="09:00", end_time="17:00",
            is_available=False,
        )
        assert await resolve_windows(db, business.id, MONDAY) == []
        assert len(await _all_windows(db)) == 1

    async def test_recurring_closed_day(self, db, business):
        await upsert_availability(
            db, business.id, day=2, start_time="09:00", end_time="17:00", is_available=False,
        )
        assert await resolve_windows(db, business.id, TUESDAY) == []


class TestWindowCovers:
    def test_inside_and_boundaries(self):
        window = AvailabilityWindow(start_time="09:00", end_time="12:00")
        assert window_covers(window, "09:00", "09:30")
        assert window_covers(window, "11:30", "12:00")
        assert not window_covers(window, "08:30", "09:00")
        assert not window_covers(window, "11:45", "12:15")
