"""Shared test fixtures and configuration.

Sets up fake environment variables before any src imports, pins the fixed
timezone, and provides temp-file SQLite fixtures.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ["TIMEZONE"] = "Asia/Kolkata"
os.environ["CHECK_INTERVAL_SECONDS"] = "60"
os.environ["INITIAL_CHECK_DELAY_SECONDS"] = "2"
os.environ["DEFAULT_REFILL_THRESHOLD"] = "10"
os.environ["CRITICAL_STOCK_LEVEL"] = "5"
os.environ["TOMORROW_REMINDER_HOUR"] = "17"
os.environ["DUE_SOON_WINDOW_MINUTES"] = "120"

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

IST = ZoneInfo("Asia/Kolkata")


@pytest.fixture
def at():
    """Build an IST instant: at(2025, 3, 10, 9, 30)."""

    def _at(year, month, day, hour=0, minute=0, second=0):
        return datetime(year, month, day, hour, minute, second, tzinfo=IST)

    return _at


@pytest.fixture
def medicine_db(tmp_path):
    """Return a MedicineDB instance backed by a temp file."""
    from src.data.db import MedicineDB
    return MedicineDB(db_path=str(tmp_path / "test_careminder.db"))


@pytest.fixture
def appointment_db(tmp_path):
    """Return an AppointmentDB instance backed by a temp file."""
    from src.data.db import AppointmentDB
    return AppointmentDB(db_path=str(tmp_path / "test_careminder.db"))
