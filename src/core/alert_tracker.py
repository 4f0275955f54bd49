"""
CareMinder — Alert Tracker.

Remembers which transient alerts were already shown today so a condition
that stays true (a dose still not taken, stock still low) pops up once per
calendar day, not once per check. The memory is dropped when the local day
changes.

Only the alert check tick may call observe()/claim().
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from src.core.time_utils import calendar_day
from src.data.models import NotificationKind

logger = logging.getLogger(__name__)

AlertKey = tuple[NotificationKind, str, date]


class AlertTracker:
    """Delivered-alert keys for the current calendar day."""

    def __init__(self) -> None:
        self._delivered: set[AlertKey] = set()
        self._day: date | None = None

    @property
    def day(self) -> date | None:
        return self._day

    @property
    def delivered(self) -> frozenset[AlertKey]:
        return frozenset(self._delivered)

    def observe(self, now: datetime) -> bool:
        """Record the current day; forget everything on a day change.

        Returns True when the delivered keys were reset.
        """
        today = calendar_day(now)
        if self._day == today:
            return False
        reset = self._day is not None
        if reset:
            logger.info(
                "Day changed %s -> %s: clearing %d delivered alerts",
                self._day, today, len(self._delivered),
            )
            self._delivered.clear()
        self._day = today
        return reset

    def key(self, kind: NotificationKind, source_id: str, now: datetime) -> AlertKey:
        return (kind, source_id, calendar_day(now))

    def claim(self, kind: NotificationKind, source_id: str, now: datetime) -> bool:
        """Mark an alert as delivered. False if it already was today."""
        key = self.key(kind, source_id, now)
        if key in self._delivered:
            return False
        self._delivered.add(key)
        return True
