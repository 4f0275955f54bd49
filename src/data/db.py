"""
CareMinder — Local Medicine & Appointment Database.

SQLite stand-in for the hosted document store: one table per collection,
every row scoped to the owning user.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from src.core.adherence import apply_dose_taken, apply_refill
from src.core.time_utils import to_local
from src.data.models import Appointment, Medicine

logger = logging.getLogger(__name__)


def _to_iso(dt: datetime | None) -> str | None:
    return to_local(dt).isoformat() if dt is not None else None


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class _SQLiteDB(ABC):
    """Connection handling shared by the collection tables."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @abstractmethod
    def _init_db(self) -> None:
        """Create the table if it doesn't exist."""


class MedicineDB(_SQLiteDB):
    """SQLite-backed medicine inventory."""

    _UPDATABLE = {
        "name", "dosage", "schedule_slot", "pills_remaining",
        "refill_threshold", "total_pills",
    }

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS medicines (
                    id                INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id           INTEGER,
                    name              TEXT    NOT NULL,
                    dosage            TEXT    NOT NULL DEFAULT '',
                    schedule_slot     TEXT,
                    pills_remaining   INTEGER NOT NULL DEFAULT 0,
                    refill_threshold  INTEGER,
                    total_pills       INTEGER NOT NULL DEFAULT 0,
                    last_taken        TEXT
                )
            """)
        logger.debug("Medicines table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_medicine(row: sqlite3.Row) -> Medicine:
        return Medicine(
            id=str(row["id"]),
            name=row["name"],
            dosage=row["dosage"],
            schedule_slot=row["schedule_slot"],
            pills_remaining=row["pills_remaining"],
            refill_threshold=row["refill_threshold"],
            last_taken=_from_iso(row["last_taken"]),
            total_pills=row["total_pills"],
            user_id=row["user_id"],
        )

    def add_medicine(
        self,
        name: str,
        dosage: str = "",
        schedule_slot: str | None = None,
        pills_remaining: int = 0,
        refill_threshold: int | None = None,
        user_id: int | None = None,
    ) -> Medicine:
        """Insert a new medicine. Capacity starts at the initial pill count."""
        if pills_remaining < 0:
            raise ValueError(f"pills_remaining must be >= 0, got {pills_remaining}")

        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO medicines
                    (user_id, name, dosage, schedule_slot,
                     pills_remaining, refill_threshold, total_pills, last_taken)
                VALUES (?, ?, ?, ?, ?, ?, ?, NULL)
                """,
                (
                    user_id, name, dosage, schedule_slot,
                    pills_remaining, refill_threshold, pills_remaining,
                ),
            )
            medicine_id = cursor.lastrowid

        medicine = Medicine(
            id=str(medicine_id),
            name=name,
            dosage=dosage,
            schedule_slot=schedule_slot,
            pills_remaining=pills_remaining,
            refill_threshold=refill_threshold,
            total_pills=pills_remaining,
            user_id=user_id,
        )
        logger.info("Medicine added: #%d '%s' (%s)", medicine_id, name, schedule_slot)
        return medicine

    def get_medicine(
        self, medicine_id: int | str, user_id: int | None = None,
    ) -> Medicine | None:
        """Fetch a single medicine by ID, optionally scoped to its owner."""
        query = "SELECT * FROM medicines WHERE id = ?"
        params: list = [int(medicine_id)]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_medicine(row)

    def list_medicines(self, user_id: int | None = None) -> list[Medicine]:
        """All medicines, newest first."""
        query = "SELECT * FROM medicines"
        params: list = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY id DESC"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_medicine(r) for r in rows]

    def list_low_stock(
        self, default_threshold: int = 10, user_id: int | None = None,
    ) -> list[Medicine]:
        """Medicines at or below their refill threshold."""
        query = (
            "SELECT * FROM medicines "
            "WHERE pills_remaining <= COALESCE(refill_threshold, ?)"
        )
        params: list = [default_threshold]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        query += " ORDER BY pills_remaining"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_medicine(r) for r in rows]

    def update_medicine(
        self, medicine_id: int | str, user_id: int | None = None, **fields,
    ) -> bool:
        """Update editable columns. Unknown column names raise ValueError."""
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update medicine fields: {sorted(unknown)}")
        if not fields:
            return False
        if fields.get("pills_remaining") is not None:
            fields["pills_remaining"] = max(0, int(fields["pills_remaining"]))

        assignments = ", ".join(f"{col} = ?" for col in fields)
        query = f"UPDATE medicines SET {assignments} WHERE id = ?"
        params: list = [*fields.values(), int(medicine_id)]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            cursor = conn.execute(query, params)
        updated = cursor.rowcount > 0
        if updated:
            logger.info("Medicine #%s updated: %s", medicine_id, ", ".join(fields))
        return updated

    def _save_stock(self, medicine: Medicine) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE medicines
                SET pills_remaining = ?, total_pills = ?, last_taken = ?
                WHERE id = ?
                """,
                (
                    medicine.pills_remaining, medicine.total_pills,
                    _to_iso(medicine.last_taken), int(medicine.id),
                ),
            )

    def mark_taken(
        self,
        medicine_id: int | str,
        taken_at: datetime,
        amount: int = 1,
        user_id: int | None = None,
    ) -> Medicine:
        """Consume a dose: decrement pills (never below 0), set last_taken."""
        medicine = self.get_medicine(medicine_id, user_id=user_id)
        if medicine is None:
            raise ValueError(f"Medicine {medicine_id} not found")

        taken = apply_dose_taken(medicine, taken_at, amount)
        self._save_stock(taken)
        logger.info(
            "Medicine #%s '%s' taken, %d pills left",
            medicine_id, taken.name, taken.pills_remaining,
        )
        return taken

    def refill(
        self, medicine_id: int | str, amount: int, user_id: int | None = None,
    ) -> Medicine:
        """Add pills; total capacity grows when exceeded."""
        medicine = self.get_medicine(medicine_id, user_id=user_id)
        if medicine is None:
            raise ValueError(f"Medicine {medicine_id} not found")

        refilled = apply_refill(medicine, amount)
        self._save_stock(refilled)
        logger.info(
            "Medicine #%s '%s' refilled by %d to %d",
            medicine_id, refilled.name, amount, refilled.pills_remaining,
        )
        return refilled

    def delete_medicine(self, medicine_id: int | str, user_id: int | None = None) -> bool:
        query = "DELETE FROM medicines WHERE id = ?"
        params: list = [int(medicine_id)]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            cursor = conn.execute(query, params)
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Medicine #%s deleted", medicine_id)
        return deleted


class AppointmentDB(_SQLiteDB):
    """SQLite-backed appointments. Dates are stored as local ISO-8601 strings."""

    _UPDATABLE = {"title", "doctor_name", "date", "location"}

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS appointments (
                    id           INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id      INTEGER,
                    title        TEXT NOT NULL DEFAULT '',
                    doctor_name  TEXT NOT NULL DEFAULT '',
                    date         TEXT NOT NULL,
                    location     TEXT
                )
            """)
        logger.debug("Appointments table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_appointment(row: sqlite3.Row) -> Appointment:
        return Appointment(
            id=str(row["id"]),
            date=_from_iso(row["date"]),
            title=row["title"],
            doctor_name=row["doctor_name"],
            location=row["location"],
            user_id=row["user_id"],
        )

    def add_appointment(
        self,
        date: datetime,
        title: str = "",
        doctor_name: str = "",
        location: str | None = None,
        user_id: int | None = None,
    ) -> Appointment:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO appointments (user_id, title, doctor_name, date, location)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, title, doctor_name, _to_iso(date), location),
            )
            appointment_id = cursor.lastrowid

        appointment = Appointment(
            id=str(appointment_id),
            date=to_local(date),
            title=title,
            doctor_name=doctor_name,
            location=location,
            user_id=user_id,
        )
        logger.info(
            "Appointment added: #%d '%s' at %s",
            appointment_id, appointment.display_name, appointment.date.isoformat(),
        )
        return appointment

    def get_appointment(
        self, appointment_id: int | str, user_id: int | None = None,
    ) -> Appointment | None:
        query = "SELECT * FROM appointments WHERE id = ?"
        params: list = [int(appointment_id)]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return self._row_to_appointment(row)

    def list_appointments(self, user_id: int | None = None) -> list[Appointment]:
        """All appointments, earliest first."""
        query = "SELECT * FROM appointments"
        params: list = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        query += " ORDER BY date"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_appointment(r) for r in rows]

    def list_between(
        self, start: datetime, end: datetime, user_id: int | None = None,
    ) -> list[Appointment]:
        """Appointments with start <= date <= end, earliest first."""
        query = "SELECT * FROM appointments WHERE date >= ? AND date <= ?"
        params: list = [_to_iso(start), _to_iso(end)]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        query += " ORDER BY date"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_appointment(r) for r in rows]

    def update_appointment(
        self, appointment_id: int | str, user_id: int | None = None, **fields,
    ) -> bool:
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update appointment fields: {sorted(unknown)}")
        if not fields:
            return False
        if "date" in fields:
            fields["date"] = _to_iso(fields["date"])

        assignments = ", ".join(f"{col} = ?" for col in fields)
        query = f"UPDATE appointments SET {assignments} WHERE id = ?"
        params: list = [*fields.values(), int(appointment_id)]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            cursor = conn.execute(query, params)
        updated = cursor.rowcount > 0
        if updated:
            logger.info("Appointment #%s updated: %s", appointment_id, ", ".join(fields))
        return updated

    def delete_appointment(
        self, appointment_id: int | str, user_id: int | None = None,
    ) -> bool:
        query = "DELETE FROM appointments WHERE id = ?"
        params: list = [int(appointment_id)]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)
        with self._connect() as conn:
            cursor = conn.execute(query, params)
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Appointment #%s deleted", appointment_id)
        return deleted
