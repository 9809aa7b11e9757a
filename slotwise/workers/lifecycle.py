"""
Appointment lifecycle - registers the periodic sweeps on a Scheduler.
The recovery sweep is not periodic; the app lifespan runs it once at startup.
"""
from typing import Optional

from slotwise.workers import expiry_sweep, missed_sweep, reminder_sweep
from slotwise.workers.scheduler import Scheduler, SleepFn

LIFECYCLE_SWEEPS = (
    "expiry_sweep",
    "missed_sweep",
    "reminder_sweep",
    "day_before_reminder_sweep",
)


def check_reminder_coupling(interval_seconds: float) -> None:
    """A reminder interval wider than the 10-15 minute band would skip appointments."""
    band_seconds = (
        reminder_sweep.REMINDER_LEAD_MAX_MINUTES - reminder_sweep.REMINDER_LEAD_MIN_MINUTES
    ) * 60
    if interval_seconds > band_seconds:
        raise ValueError(
            f"Reminder sweep interval ({interval_seconds}s) exceeds the reminder band ({band_seconds}s)"
        )


def build_lifecycle_scheduler(
    jitter_seconds: float = 0.0,
    sleep: Optional[SleepFn] = None,
    reminder_interval_seconds: float = reminder_sweep.POLL_INTERVAL_SECONDS,
) -> Scheduler:
    check_reminder_coupling(reminder_interval_seconds)

    expiry, missed, reminder, day_before = LIFECYCLE_SWEEPS
    scheduler = Scheduler(sleep=sleep)
    scheduler.add(
        expiry, expiry_sweep.POLL_INTERVAL_SECONDS,
        expiry_sweep.expire_past_appointments, jitter_seconds,
    )
    scheduler.add(
        missed, missed_sweep.POLL_INTERVAL_SECONDS,
        missed_sweep.mark_missed_appointments, jitter_seconds,
    )
    scheduler.add(
        reminder, reminder_interval_seconds,
        reminder_sweep.send_upcoming_reminders, 0.0,  # jitter would push the interval past the band width
    )
    scheduler.add(
        day_before, reminder_sweep.DAY_BEFORE_POLL_INTERVAL_SECONDS,
        reminder_sweep.send_day_before_reminders, jitter_seconds,
    )
    return scheduler
