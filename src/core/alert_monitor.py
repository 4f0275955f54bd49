"""
CareMinder — Alert Monitor.

The per-minute check: looks at the current medicines and appointments and
pushes a transient alert for each condition that hasn't been announced yet
today.

    missed dose            → warning with a "Take Now" action
    critically low stock   → error   (≤ CRITICAL_STOCK_LEVEL pills)
    appointment tomorrow   → info    (only from TOMORROW_REMINDER_HOUR on)
    appointment due soon   → warning (within DUE_SOON_WINDOW_MINUTES)

This module is provider-agnostic: it depends on the AlertPort and
CareStorePort protocols, not on specific implementations.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from src.config import settings
from src.core import adherence, appointments as appts
from src.core.alert_tracker import AlertTracker
from src.core.time_utils import format_time, hour_of_day, now as current_time, time_label
from src.data.models import (
    AlertAction,
    Appointment,
    Medicine,
    NotificationKind,
    TransientAlert,
)
from src.ports.care_store_port import StoreNotReadyError

if TYPE_CHECKING:
    from src.core.care_state import CareState
    from src.ports.care_store_port import CareStorePort
    from src.ports.notification_port import AlertPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Alert builders
# ---------------------------------------------------------------------------


def missed_dose_alert(medicine: Medicine) -> TransientAlert:
    slot = medicine.schedule_slot
    return TransientAlert(
        kind=NotificationKind.MISSED_DOSE,
        title=f"{time_label(slot)} ({slot}) Medication Missed",
        message=f"You haven't taken your {medicine.name} ({medicine.dosage}) yet",
        level="warning",
        duration_seconds=8,
        source_id=medicine.id,
        action=AlertAction(label="Take Now", medicine_id=medicine.id),
    )


def low_stock_alert(medicine: Medicine) -> TransientAlert:
    return TransientAlert(
        kind=NotificationKind.LOW_STOCK,
        title="Low Stock Alert",
        message=(
            f"{medicine.name} has only {medicine.pills_remaining} pills left. "
            "Time to refill!"
        ),
        level="error",
        duration_seconds=10,
        source_id=medicine.id,
    )


def tomorrow_alert(appointment: Appointment) -> TransientAlert:
    return TransientAlert(
        kind=NotificationKind.APPOINTMENT_TOMORROW,
        title="Appointment Tomorrow",
        message=f"{appointment.display_name} at {format_time(appointment.date)}",
        level="info",
        duration_seconds=10,
        source_id=appointment.id,
    )


def due_soon_alert(appointment: Appointment, now: datetime) -> TransientAlert:
    return TransientAlert(
        kind=NotificationKind.APPOINTMENT_SOON,
        title="Appointment Soon",
        message=appts.due_soon_message(appointment, now),
        level="warning",
        duration_seconds=15,
        source_id=appointment.id,
    )


def dose_taken_alert() -> TransientAlert:
    return TransientAlert(
        kind=None,
        title="Medicine Taken",
        message="Great job staying on track with your medication!",
        level="success",
        duration_seconds=3,
    )


# ---------------------------------------------------------------------------
# Monitor
# ---------------------------------------------------------------------------


class AlertMonitor:
    """Runs alert checks for one user's CareState."""

    def __init__(
        self,
        state: CareState,
        notifier: AlertPort,
        store: CareStorePort | None = None,
        tracker: AlertTracker | None = None,
    ) -> None:
        self._state = state
        self._notifier = notifier
        self._store = store
        self._tracker = tracker or AlertTracker()

    @property
    def tracker(self) -> AlertTracker:
        return self._tracker

    def collect(self, now: datetime) -> list[TransientAlert]:
        """Return the alerts not yet delivered today, marking them delivered."""
        tracker = self._tracker
        tracker.observe(now)
        alerts: list[TransientAlert] = []

        for medicine in self._state.medicines:
            if adherence.is_missed(medicine, now) and tracker.claim(
                NotificationKind.MISSED_DOSE, medicine.id, now,
            ):
                alerts.append(missed_dose_alert(medicine))

            if (
                adherence.is_low_stock(medicine)
                and adherence.is_critically_low(medicine)
                and tracker.claim(NotificationKind.LOW_STOCK, medicine.id, now)
            ):
                alerts.append(low_stock_alert(medicine))

        alerts.extend(self._collect_appointment_alerts(now))
        return alerts

    def _collect_appointment_alerts(self, now: datetime) -> list[TransientAlert]:
        try:
            appointments = self._state.appointments
        except StoreNotReadyError as exc:
            logger.warning("Could not check appointment reminders: %s", exc)
            return []

        tracker = self._tracker
        alerts: list[TransientAlert] = []

        # Tomorrow's reminders only pop up in the evening
        if hour_of_day(now) >= settings.TOMORROW_REMINDER_HOUR:
            for apt in appts.appointments_due_tomorrow(appointments, now):
                if tracker.claim(NotificationKind.APPOINTMENT_TOMORROW, apt.id, now):
                    alerts.append(tomorrow_alert(apt))

        for apt in appts.appointments_due_today(appointments, now):
            if appts.is_due_soon(apt, now) and tracker.claim(
                NotificationKind.APPOINTMENT_SOON, apt.id, now,
            ):
                alerts.append(due_soon_alert(apt, now))

        return alerts

    async def check(self, now: datetime | None = None) -> list[TransientAlert]:
        """One tick: collect new alerts and push each one to the notifier.

        A failed delivery is logged and does not stop the remaining alerts.
        """
        now = now or current_time()
        alerts = self.collect(now)
        for alert in alerts:
            try:
                await self._notifier.send_alert(alert)
            except Exception as exc:
                logger.error("Failed to deliver alert '%s': %s", alert.title, exc)
        if alerts:
            logger.info("Alert check at %s: %d new alerts", now.isoformat(), len(alerts))
        return alerts

    async def take_now(self, medicine_id: str) -> bool:
        """Record a dose from a "Take Now" action.

        Delivered-alert keys are left alone: the missed-dose condition clears
        on its own once the store reports last_taken as today.
        """
        if self._store is None:
            logger.error("Take now for %s: no store configured", medicine_id)
            return False

        try:
            ok = await self._store.mark_taken(medicine_id)
        except Exception as exc:
            logger.error("Take now for %s failed: %s", medicine_id, exc)
            return False

        if not ok:
            logger.warning("Take now for %s was not recorded", medicine_id)
            return False

        try:
            await self._notifier.send_alert(dose_taken_alert())
        except Exception as exc:
            logger.error("Failed to confirm dose for %s: %s", medicine_id, exc)
        return True
