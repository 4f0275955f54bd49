"""
CareMinder — Data Models.

Medicines and appointments are pushed in from the store; notifications and
transient alerts are derived from them on every evaluation and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


def _parse_instant(value: Any) -> datetime | None:
    """Accept a datetime, an ISO-8601 string, or nothing."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    raise TypeError(f"Unsupported timestamp value: {value!r}")


@dataclass
class Medicine:
    """A medicine in a user's inventory, taken once a day in one slot."""

    id: str
    name: str
    dosage: str = ""
    schedule_slot: str | None = None    # "morning" | ... | "8:00 AM" | free text
    pills_remaining: int = 0
    refill_threshold: int | None = None  # None → settings.DEFAULT_REFILL_THRESHOLD
    last_taken: datetime | None = None
    total_pills: int = 0
    user_id: int | None = None

    @classmethod
    def from_dict(cls, doc: dict) -> Medicine:
        """Build a Medicine from a store document (camelCase or snake_case keys)."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if doc.get(key) is not None:
                    return doc[key]
            return default

        threshold = pick("refillThreshold", "refill_threshold")
        return cls(
            id=str(doc["id"]),
            name=pick("name", default=""),
            dosage=pick("dosage", default=""),
            schedule_slot=pick("scheduleSlot", "schedule_slot", "time", "scheduledTime"),
            pills_remaining=max(0, int(pick("pillsRemaining", "pills_remaining", default=0))),
            refill_threshold=int(threshold) if threshold is not None else None,
            last_taken=_parse_instant(pick("lastTaken", "last_taken")),
            total_pills=int(pick("totalPills", "total_pills", default=0)),
            user_id=pick("userId", "user_id"),
        )


@dataclass
class Appointment:
    """A single, non-recurring appointment."""

    id: str
    date: datetime
    title: str = ""
    doctor_name: str = ""
    location: str | None = None
    user_id: int | None = None

    @property
    def display_name(self) -> str:
        return self.doctor_name or self.title or "Doctor Appointment"

    @classmethod
    def from_dict(cls, doc: dict) -> Appointment:
        """Build an Appointment from a store document."""
        return cls(
            id=str(doc["id"]),
            date=_parse_instant(doc["date"]),
            title=doc.get("title") or "",
            doctor_name=doc.get("doctorName") or doc.get("doctor_name") or "",
            location=doc.get("location"),
            user_id=doc.get("userId", doc.get("user_id")),
        )


class NotificationKind(str, Enum):
    MISSED_DOSE = "missed-dose"
    LOW_STOCK = "low-stock"
    APPOINTMENT_TODAY = "appointment-today"
    APPOINTMENT_TOMORROW = "appointment-tomorrow"
    APPOINTMENT_SOON = "appointment-soon"  # transient only


@dataclass(frozen=True)
class Notification:
    """One entry of the persistent notification panel."""

    id: str
    kind: NotificationKind
    priority: int         # 1 = most urgent
    message: str
    source_id: str
    title: str = ""


@dataclass(frozen=True)
class AlertAction:
    """Acknowledgment button attached to a transient alert."""

    label: str
    medicine_id: str


@dataclass(frozen=True)
class TransientAlert:
    """A pop-up style alert, emitted at most once per key per day."""

    kind: NotificationKind | None   # None for confirmations ("Medicine Taken")
    title: str
    message: str
    level: str = "info"             # info | success | warning | error
    duration_seconds: float = 5.0
    source_id: str | None = None
    action: AlertAction | None = field(default=None)
