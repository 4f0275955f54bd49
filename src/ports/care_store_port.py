"""Care store port — abstract interface for the persistence collaborator.

Core modules depend on this protocol, never on a specific backend. Every
write is expected to push the fresh collection into the user's CareState.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.data.models import Appointment, Medicine


class StoreError(Exception):
    """Raised when a store backend operation fails."""


class StoreNotReadyError(StoreError):
    """Raised when a collection is read before the store has delivered it."""


class CareStorePort(Protocol):
    """Abstract persistence interface used by core modules and the bot."""

    def sync(self) -> None: ...

    async def mark_taken(self, medicine_id: str) -> bool: ...

    async def refill(self, medicine_id: str, amount: int) -> Medicine | None: ...

    async def set_refill_threshold(
        self, medicine_id: str, threshold: int | None,
    ) -> Medicine | None: ...

    def low_stock(self) -> list[Medicine]: ...

    async def add_medicine(self, **fields) -> Medicine | None: ...

    async def delete_medicine(self, medicine_id: str) -> bool: ...

    async def add_appointment(self, **fields) -> Appointment | None: ...

    async def reschedule_appointment(
        self, appointment_id: str, date: datetime,
    ) -> Appointment | None: ...

    def appointments_on(self, day: datetime) -> list[Appointment]: ...

    async def delete_appointment(self, appointment_id: str) -> bool: ...
