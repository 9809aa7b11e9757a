"""
Time utilities for slot generation and lifecycle sweeps.

Appointment and availability times are stored as business-local "HH:MM"
strings with no zone attached. Everything here takes the zone explicitly so
that callers (and tests) decide which clock they are reasoning about.
"""
import re
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

_HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def get_zoneinfo(timezone_str: Optional[str] = None) -> ZoneInfo:
    """ZoneInfo for the given name, falling back to the configured APP_TIMEZONE."""
    if timezone_str:
        return ZoneInfo(timezone_str)
    from slotwise.config import get_settings
    return ZoneInfo(get_settings().app_timezone)


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour "HH:MM" string. Raises ValueError on anything else."""
    match = _HHMM_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid HH:MM time: {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


def hhmm_to_minutes(value: str) -> int:
    """Minutes since midnight for an "HH:MM" string."""
    t = parse_hhmm(value)
    return t.hour * 60 + t.minute


def minutes_to_hhmm(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    if minutes < 0 or minutes >= 24 * 60:
        raise ValueError(f"Minutes out of range for a time of day: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def day_of_week(d: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (d.weekday() + 1) % 7


def local_now(tz: ZoneInfo, now: Optional[datetime] = None) -> datetime:
    """
    Current wall-clock time in `tz`.
    A naive `now` is taken to already be local to `tz`.
    """
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def local_today(tz: ZoneInfo, now: Optional[datetime] = None) -> date:
    return local_now(tz, now).date()


def local_datetime(d: date, hhmm: str, tz: ZoneInfo) -> datetime:
    """Aware datetime for a business-local date + "HH:MM"."""
    return datetime.combine(d, parse_hhmm(hhmm), tzinfo=tz)


def minutes_until(d: date, hhmm: str, tz: ZoneInfo, now: datetime) -> float:
    """Minutes from `now` until the local start time (negative once it has passed)."""
    delta = local_datetime(d, hhmm, tz) - local_now(tz, now)
    return delta / timedelta(minutes=1)
