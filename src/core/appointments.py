"""Appointment reminder evaluator — pure business logic.

Classifies appointments relative to `now`: due today, due tomorrow, or due
soon (a same-day countdown window). No I/O.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from src.config import settings
from src.core.time_utils import day_bounds, format_time, to_local
from src.data.models import Appointment, Notification, NotificationKind

TODAY_PRIORITY = 1
TOMORROW_PRIORITY = 3


def is_due_today(appointment: Appointment, now: datetime) -> bool:
    """Later today (or right now). Appointments already past drop out."""
    _, end = day_bounds(now)
    return to_local(now) <= to_local(appointment.date) <= end


def is_due_tomorrow(appointment: Appointment, now: datetime) -> bool:
    start, end = day_bounds(now, offset_days=1)
    return start <= to_local(appointment.date) <= end


def minutes_until(appointment: Appointment, now: datetime) -> float:
    return (to_local(appointment.date) - to_local(now)).total_seconds() / 60


def is_due_soon(
    appointment: Appointment,
    now: datetime,
    window_minutes: int | None = None,
) -> bool:
    """Starts within the countdown window (default 120 min), and not yet started."""
    if window_minutes is None:
        window_minutes = settings.DUE_SOON_WINDOW_MINUTES
    remaining = minutes_until(appointment, now)
    return 0 < remaining <= window_minutes


def appointments_due_today(
    appointments: list[Appointment], now: datetime,
) -> list[Appointment]:
    return [a for a in appointments if is_due_today(a, now)]


def appointments_due_tomorrow(
    appointments: list[Appointment], now: datetime,
) -> list[Appointment]:
    return [a for a in appointments if is_due_tomorrow(a, now)]


def upcoming_appointments(
    appointments: list[Appointment], now: datetime, days: int = 7,
) -> list[Appointment]:
    """Appointments between now and `days` days ahead, soonest first."""
    start = to_local(now)
    end = start + timedelta(days=days)
    upcoming = [a for a in appointments if start <= to_local(a.date) <= end]
    upcoming.sort(key=lambda a: to_local(a.date))
    return upcoming


def today_notification(appointment: Appointment) -> Notification:
    return Notification(
        id=f"apt-today-{appointment.id}",
        kind=NotificationKind.APPOINTMENT_TODAY,
        priority=TODAY_PRIORITY,
        title=appointment.title or appointment.display_name,
        message=f"Today: {appointment.display_name} at {format_time(appointment.date)}",
        source_id=appointment.id,
    )


def tomorrow_notification(appointment: Appointment) -> Notification:
    return Notification(
        id=f"apt-tomorrow-{appointment.id}",
        kind=NotificationKind.APPOINTMENT_TOMORROW,
        priority=TOMORROW_PRIORITY,
        title=appointment.title or appointment.display_name,
        message=f"Tomorrow: {appointment.display_name} at {format_time(appointment.date)}",
        source_id=appointment.id,
    )


def due_soon_message(appointment: Appointment, now: datetime) -> str:
    """e.g. "Dr. Rao at 04:00 PM (in 90 minutes)"; minutes rounded half up."""
    minutes = math.floor(minutes_until(appointment, now) + 0.5)
    return (
        f"{appointment.display_name} at {format_time(appointment.date)} "
        f"(in {minutes} minutes)"
    )
