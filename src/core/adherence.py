"""Medicine adherence evaluator — pure business logic.

Decides whether a medicine's daily dose is missed and whether its stock is
low, and applies the "take now" / refill mutations to a record.

No I/O: this module only transforms data. `now` is always passed in.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime

from src.config import settings
from src.core.time_utils import (
    hour_of_day,
    parse_time_of_day,
    same_calendar_day,
    time_label,
)
from src.data.models import Medicine, Notification, NotificationKind

MISSED_DOSE_PRIORITY = 2
LOW_STOCK_PRIORITY = 4


def schedule_hour(medicine: Medicine) -> float | None:
    """Due hour of the medicine's slot, or None when the slot doesn't parse."""
    return parse_time_of_day(medicine.schedule_slot)


def has_time_passed(time_str: str | None, now: datetime) -> bool:
    """True once the current hour of day is strictly past the scheduled hour.

    Unparseable schedules never pass.
    """
    scheduled = parse_time_of_day(time_str)
    if scheduled is None:
        return False
    return hour_of_day(now) > scheduled


def was_taken_today(medicine: Medicine, now: datetime) -> bool:
    if medicine.last_taken is None:
        return False
    return same_calendar_day(medicine.last_taken, now)


def is_missed(medicine: Medicine, now: datetime) -> bool:
    """Due time passed today and no dose recorded today."""
    if not medicine.schedule_slot:
        return False
    return has_time_passed(medicine.schedule_slot, now) and not was_taken_today(medicine, now)


def refill_threshold(medicine: Medicine) -> int:
    if medicine.refill_threshold is None:
        return settings.DEFAULT_REFILL_THRESHOLD
    return medicine.refill_threshold


def is_low_stock(medicine: Medicine) -> bool:
    return medicine.pills_remaining <= refill_threshold(medicine)


def is_critically_low(medicine: Medicine) -> bool:
    """Stricter gate used for interrupting pop-ups."""
    return medicine.pills_remaining <= settings.CRITICAL_STOCK_LEVEL


def missed_dose_notification(medicine: Medicine) -> Notification:
    slot = medicine.schedule_slot
    label = time_label(slot)
    return Notification(
        id=f"missed-{medicine.id}",
        kind=NotificationKind.MISSED_DOSE,
        priority=MISSED_DOSE_PRIORITY,
        title=f"{label} dose missed",
        message=f"{label} pill missed: {medicine.name} ({slot})",
        source_id=medicine.id,
    )


def low_stock_notification(medicine: Medicine) -> Notification:
    return Notification(
        id=f"low-stock-{medicine.id}",
        kind=NotificationKind.LOW_STOCK,
        priority=LOW_STOCK_PRIORITY,
        title="Low stock",
        message=f"Low stock: {medicine.name} ({medicine.pills_remaining} pills left)",
        source_id=medicine.id,
    )


# ---------------------------------------------------------------------------
# Adherence actions
# ---------------------------------------------------------------------------


def apply_dose_taken(medicine: Medicine, now: datetime, amount: int = 1) -> Medicine:
    """Return a copy with `amount` pills consumed (never below 0) and last_taken = now."""
    return dataclasses.replace(
        medicine,
        pills_remaining=max(0, medicine.pills_remaining - amount),
        last_taken=now,
    )


def apply_refill(medicine: Medicine, amount: int) -> Medicine:
    """Return a copy with `amount` pills added; capacity grows to fit."""
    if amount <= 0:
        raise ValueError(f"Refill amount must be positive, got {amount}")
    new_count = medicine.pills_remaining + amount
    return dataclasses.replace(
        medicine,
        pills_remaining=new_count,
        total_pills=max(medicine.total_pills, new_count),
    )


def medicines_for_slot(medicines: list[Medicine], slot: str) -> list[Medicine]:
    """Medicines whose schedule slot matches `slot` (case-insensitive)."""
    wanted = slot.strip().lower()
    return [
        m for m in medicines
        if m.schedule_slot and m.schedule_slot.strip().lower() == wanted
    ]
