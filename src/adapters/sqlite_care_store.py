"""SQLite care store adapter — implements CareStorePort.

Wraps MedicineDB / AppointmentDB for one user and pushes fresh collections
into that user's CareState after every write, the way a real-time listener
on the hosted store would.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Callable

from src.core.care_state import CareState
from src.config import settings
from src.core.time_utils import day_bounds, now
from src.data.db import AppointmentDB, MedicineDB
from src.data.models import Appointment, Medicine

logger = logging.getLogger(__name__)


class SQLiteCareStore:
    """SQLite implementation of CareStorePort for a single user."""

    def __init__(
        self,
        state: CareState,
        user_id: int | None = None,
        medicine_db: MedicineDB | None = None,
        appointment_db: AppointmentDB | None = None,
        clock: Callable[[], datetime] = now,
    ) -> None:
        self._state = state
        self._clock = clock
        self._user_id = user_id
        self._medicines = medicine_db or MedicineDB()
        self._appointments = appointment_db or AppointmentDB()

    @property
    def medicine_db(self) -> MedicineDB:
        return self._medicines

    @property
    def appointment_db(self) -> AppointmentDB:
        return self._appointments

    def sync(self) -> None:
        """Push both collections into the CareState."""
        self._push_medicines()
        self._push_appointments()

    def _push_medicines(self) -> None:
        self._state.set_medicines(self._medicines.list_medicines(user_id=self._user_id))

    def _push_appointments(self) -> None:
        self._state.set_appointments(
            self._appointments.list_appointments(user_id=self._user_id),
        )

    async def add_medicine(self, **fields) -> Medicine | None:
        try:
            medicine = self._medicines.add_medicine(user_id=self._user_id, **fields)
        except (ValueError, sqlite3.Error) as exc:
            logger.error("Add medicine error: %s", exc)
            return None
        self._push_medicines()
        return medicine

    async def add_appointment(self, **fields) -> Appointment | None:
        try:
            appointment = self._appointments.add_appointment(user_id=self._user_id, **fields)
        except (ValueError, sqlite3.Error) as exc:
            logger.error("Add appointment error: %s", exc)
            return None
        self._push_appointments()
        return appointment

    async def mark_taken(self, medicine_id: str, taken_at: datetime | None = None) -> bool:
        try:
            self._medicines.mark_taken(
                medicine_id, taken_at=taken_at or self._clock(), user_id=self._user_id,
            )
        except (ValueError, sqlite3.Error) as exc:
            logger.error("Mark taken error for medicine %s: %s", medicine_id, exc)
            return False
        self._push_medicines()
        return True

    async def refill(self, medicine_id: str, amount: int) -> Medicine | None:
        """Add pills. Returns the updated medicine, or None on failure."""
        try:
            medicine = self._medicines.refill(medicine_id, amount, user_id=self._user_id)
        except (ValueError, sqlite3.Error) as exc:
            logger.error("Refill error for medicine %s: %s", medicine_id, exc)
            return None
        self._push_medicines()
        return medicine

    async def set_refill_threshold(
        self, medicine_id: str, threshold: int | None,
    ) -> Medicine | None:
        """Set (or with None, reset to the default) the refill threshold."""
        try:
            updated = self._medicines.update_medicine(
                medicine_id, user_id=self._user_id, refill_threshold=threshold,
            )
            medicine = (
                self._medicines.get_medicine(medicine_id, user_id=self._user_id)
                if updated else None
            )
        except (ValueError, sqlite3.Error) as exc:
            logger.error("Threshold error for medicine %s: %s", medicine_id, exc)
            return None
        if medicine is not None:
            self._push_medicines()
        return medicine

    def low_stock(self) -> list[Medicine]:
        """Medicines at or below their refill threshold, emptiest first."""
        return self._medicines.list_low_stock(
            settings.DEFAULT_REFILL_THRESHOLD, user_id=self._user_id,
        )

    async def delete_medicine(self, medicine_id: str) -> bool:
        try:
            deleted = self._medicines.delete_medicine(medicine_id, user_id=self._user_id)
        except (ValueError, sqlite3.Error) as exc:
            logger.error("Delete error for medicine %s: %s", medicine_id, exc)
            return False
        if deleted:
            self._push_medicines()
        return deleted

    async def reschedule_appointment(
        self, appointment_id: str, date: datetime,
    ) -> Appointment | None:
        try:
            updated = self._appointments.update_appointment(
                appointment_id, user_id=self._user_id, date=date,
            )
            appointment = (
                self._appointments.get_appointment(appointment_id, user_id=self._user_id)
                if updated else None
            )
        except (ValueError, sqlite3.Error) as exc:
            logger.error("Reschedule error for appointment %s: %s", appointment_id, exc)
            return None
        if appointment is not None:
            self._push_appointments()
        return appointment

    def appointments_on(self, day: datetime) -> list[Appointment]:
        """Appointments on the local calendar day of `day`, earliest first."""
        start, end = day_bounds(day)
        return self._appointments.list_between(start, end, user_id=self._user_id)

    async def delete_appointment(self, appointment_id: str) -> bool:
        try:
            deleted = self._appointments.delete_appointment(
                appointment_id, user_id=self._user_id,
            )
        except (ValueError, sqlite3.Error) as exc:
            logger.error("Delete error for appointment %s: %s", appointment_id, exc)
            return False
        if deleted:
            self._push_appointments()
        return deleted
