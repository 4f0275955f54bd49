"""
CareMinder — Notification Aggregator.

Merges per-medicine and per-appointment status into the single ordered list
shown in the persistent notification panel:

    1. appointments due today
    2. missed doses
    3. appointments due tomorrow
    4. low stock

The list is recomputed from scratch on every call and is not de-duplicated
across calls; only transient alerts go through the AlertTracker.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from src.core import adherence, appointments as appts
from src.core.time_utils import now as current_time
from src.data.models import Appointment, Medicine, Notification
from src.ports.care_store_port import StoreNotReadyError

if TYPE_CHECKING:
    from src.core.care_state import CareState

logger = logging.getLogger(__name__)


def get_missed_medicines(
    medicines: list[Medicine], now: datetime,
) -> list[Notification]:
    return [
        adherence.missed_dose_notification(m)
        for m in medicines
        if adherence.is_missed(m, now)
    ]


def get_low_stock_notifications(medicines: list[Medicine]) -> list[Notification]:
    return [
        adherence.low_stock_notification(m)
        for m in medicines
        if adherence.is_low_stock(m)
    ]


def get_todays_appointment_reminders(
    appointments: list[Appointment], now: datetime,
) -> list[Notification]:
    return [
        appts.today_notification(a)
        for a in appts.appointments_due_today(appointments, now)
    ]


def get_tomorrows_appointment_reminders(
    appointments: list[Appointment], now: datetime,
) -> list[Notification]:
    """Tomorrow's appointments, at any hour (the pop-up path gates on 17:00)."""
    return [
        appts.tomorrow_notification(a)
        for a in appts.appointments_due_tomorrow(appointments, now)
    ]


def get_all_notifications(
    medicines: list[Medicine],
    appointments: list[Appointment],
    now: datetime,
) -> list[Notification]:
    """All current notifications, most urgent first.

    Groups are concatenated in priority order and then stable-sorted, so
    entries of equal priority keep their input order.
    """
    merged = [
        *get_todays_appointment_reminders(appointments, now),
        *get_missed_medicines(medicines, now),
        *get_tomorrows_appointment_reminders(appointments, now),
        *get_low_stock_notifications(medicines),
    ]
    return sorted(merged, key=lambda n: n.priority)


def get_notification_count(
    medicines: list[Medicine],
    appointments: list[Appointment],
    now: datetime,
) -> int:
    return len(get_all_notifications(medicines, appointments, now))


class NotificationCenter:
    """Notification panel view over a CareState.

    An appointment collection that hasn't been delivered yet counts as
    empty for that evaluation instead of failing the whole panel.
    """

    def __init__(self, state: CareState) -> None:
        self._state = state

    def _appointments(self) -> list[Appointment]:
        try:
            return self._state.appointments
        except StoreNotReadyError as exc:
            logger.warning("Could not fetch appointment reminders: %s", exc)
            return []

    def get_all_notifications(self, now: datetime | None = None) -> list[Notification]:
        now = now or current_time()
        return get_all_notifications(self._state.medicines, self._appointments(), now)

    def get_notification_count(self, now: datetime | None = None) -> int:
        return len(self.get_all_notifications(now))
