"""
CareMinder — Time Authority.

Every "today", "tomorrow" and "hour of day" question is answered in one fixed
civil timezone (settings.TIMEZONE, India Standard Time by default), whatever
the host's local timezone is.

Callers pass `now` explicitly; only `now()` reads the wall clock.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from src.config import settings

logger = logging.getLogger(__name__)

# Representative hour for each coarse schedule slot
SLOT_HOURS: dict[str, float] = {
    "morning": 8.0,
    "afternoon": 14.0,
    "evening": 20.0,
    "night": 21.0,
}

_CLOCK_RE = re.compile(
    r"^(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)?$",
    re.IGNORECASE,
)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def now() -> datetime:
    """Current instant in the fixed timezone."""
    return datetime.now(local_tz())


def to_local(dt: datetime) -> datetime:
    """Express an instant in the fixed timezone.

    Naive datetimes are taken to already be local wall-clock time.
    """
    tz = local_tz()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def calendar_day(dt: datetime) -> date:
    return to_local(dt).date()


def same_calendar_day(a: datetime, b: datetime) -> bool:
    """Compare year/month/day only, both sides in the fixed timezone."""
    return calendar_day(a) == calendar_day(b)


def day_bounds(ref: datetime, offset_days: int = 0) -> tuple[datetime, datetime]:
    """Return the first and last instant of a local day relative to `ref`."""
    tz = local_tz()
    day = calendar_day(ref) + timedelta(days=offset_days)
    return (
        datetime.combine(day, time.min, tzinfo=tz),
        datetime.combine(day, time.max, tzinfo=tz),
    )


def hour_of_day(dt: datetime) -> float:
    """Hour of day as a real number, e.g. 14:30 → 14.5."""
    local = to_local(dt)
    return (
        local.hour + local.minute / 60 + local.second / 3600
        + local.microsecond / 3_600_000_000
    )


def parse_time_of_day(value: str | None) -> float | None:
    """Map a schedule slot or clock string to an hour in [0, 24).

    Accepts "morning" / "afternoon" / "evening" / "night" (any case) and
    clock times like "8", "14:00", "8:00 AM", "2:30 pm", "12 AM".

    Returns None for anything else; callers treat None as "never due".
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip().lower()
    if text in SLOT_HOURS:
        return SLOT_HOURS[text]

    match = _CLOCK_RE.match(text)
    if match is None:
        logger.debug("Unparseable time of day: %r", value)
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    period = (match.group(3) or "").replace(".", "")

    if minutes > 59:
        logger.debug("Minutes out of range in %r", value)
        return None

    if period:
        if not 1 <= hours <= 12:
            logger.debug("12-hour clock out of range in %r", value)
            return None
        if period == "pm" and hours < 12:
            hours += 12
        elif period == "am" and hours == 12:
            hours = 0
    elif hours > 23:
        logger.debug("Hour out of range in %r", value)
        return None

    return hours + minutes / 60


def period_label(hour: float) -> str:
    if 5 <= hour < 12:
        return "Morning"
    if 12 <= hour < 17:
        return "Afternoon"
    if 17 <= hour < 21:
        return "Evening"
    return "Night"


def time_label(time_str: str | None) -> str:
    """Friendly period label for a schedule string ("8:00 AM" → "Morning")."""
    if not time_str:
        return "Scheduled"
    hour = parse_time_of_day(time_str)
    if hour is None:
        return time_str
    return period_label(hour)


def greeting(at: datetime | None = None) -> str:
    """Header greeting, e.g. "Good Evening"."""
    at = at or now()
    return f"Good {period_label(to_local(at).hour)}"


def format_time(dt: datetime) -> str:
    """Clock time like "02:30 PM" in the fixed timezone."""
    return to_local(dt).strftime("%I:%M %p")


def format_date(dt: datetime) -> str:
    """Date like "30 Jan 2026" in the fixed timezone."""
    local = to_local(dt)
    return f"{local.day} {local.strftime('%b %Y')}"


def current_time_display(at: datetime | None = None) -> str:
    """Live clock string, e.g. "2:05:09 PM IST"."""
    local = to_local(at or now())
    hour12 = local.hour % 12 or 12
    ampm = "PM" if local.hour >= 12 else "AM"
    return f"{hour12}:{local.minute:02d}:{local.second:02d} {ampm} {local.tzname()}"
