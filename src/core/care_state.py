"""
CareMinder — Care State.

Holds the latest medicine and appointment collections pushed in by the store,
and tells subscribers when either one changes. Evaluators never read this
directly; callers hand its collections to the pure functions.
"""

from __future__ import annotations

import logging
from typing import Callable

from src.data.models import Appointment, Medicine
from src.ports.care_store_port import StoreNotReadyError

logger = logging.getLogger(__name__)

Subscriber = Callable[["CareState"], None]


class CareState:
    """Latest known medicines and appointments for one user."""

    def __init__(
        self,
        medicines: list[Medicine] | None = None,
        appointments: list[Appointment] | None = None,
    ) -> None:
        self._medicines: list[Medicine] = list(medicines or [])
        # None until the appointment collection has been delivered once
        self._appointments: list[Appointment] | None = (
            None if appointments is None else list(appointments)
        )
        self._subscribers: list[Subscriber] = []

    @property
    def medicines(self) -> list[Medicine]:
        return list(self._medicines)

    @property
    def appointments(self) -> list[Appointment]:
        if self._appointments is None:
            raise StoreNotReadyError("Appointment collection not loaded yet")
        return list(self._appointments)

    @property
    def appointments_ready(self) -> bool:
        return self._appointments is not None

    def find_medicine(self, medicine_id: str) -> Medicine | None:
        for m in self._medicines:
            if m.id == medicine_id:
                return m
        return None

    def set_medicines(self, medicines: list[Medicine]) -> None:
        self._medicines = list(medicines)
        logger.debug("Care state: %d medicines", len(self._medicines))
        self._notify()

    def set_appointments(self, appointments: list[Appointment]) -> None:
        self._appointments = list(appointments)
        logger.debug("Care state: %d appointments", len(self._appointments))
        self._notify()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback(self)
            except Exception as exc:
                logger.error("Care state subscriber failed: %s", exc)
