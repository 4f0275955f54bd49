"""Tests for src.core.alert_monitor — the per-minute transient alert check."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.alert_monitor import (
    AlertMonitor,
    dose_taken_alert,
    due_soon_alert,
    low_stock_alert,
    missed_dose_alert,
    tomorrow_alert,
)
from src.core.care_state import CareState
from src.data.models import Appointment, Medicine, NotificationKind


def _medicine(medicine_id="m1", slot="morning", pills=30, last_taken=None):
    return Medicine(
        id=medicine_id, name="Aspirin", dosage="75mg", schedule_slot=slot,
        pills_remaining=pills, last_taken=last_taken, total_pills=30,
    )


def _appointment(appointment_id, date):
    return Appointment(id=appointment_id, date=date, doctor_name="Dr. Rao")


@pytest.fixture
def notifier():
    mock = MagicMock()
    mock.send_alert = AsyncMock()
    return mock


@pytest.fixture
def store():
    mock = MagicMock()
    mock.mark_taken = AsyncMock(return_value=True)
    return mock


def _kinds(alerts):
    return [a.kind for a in alerts]


class TestAlertBuilders:
    def test_missed_dose_alert(self):
        alert = missed_dose_alert(_medicine())
        assert alert.title == "Morning (morning) Medication Missed"
        assert alert.message == "You haven't taken your Aspirin (75mg) yet"
        assert alert.level == "warning"
        assert alert.duration_seconds == 8
        assert alert.action.label == "Take Now"
        assert alert.action.medicine_id == "m1"

    def test_low_stock_alert(self):
        alert = low_stock_alert(_medicine(pills=3))
        assert alert.title == "Low Stock Alert"
        assert alert.message == "Aspirin has only 3 pills left. Time to refill!"
        assert alert.level == "error"
        assert alert.action is None

    def test_tomorrow_alert(self, at):
        alert = tomorrow_alert(_appointment("a1", at(2025, 3, 11, 10, 0)))
        assert alert.message == "Dr. Rao at 10:00 AM"
        assert alert.level == "info"

    def test_due_soon_alert(self, at):
        alert = due_soon_alert(_appointment("a1", at(2025, 3, 10, 16, 0)), at(2025, 3, 10, 14, 30))
        assert alert.kind == NotificationKind.APPOINTMENT_SOON
        assert alert.message == "Dr. Rao at 04:00 PM (in 90 minutes)"
        assert alert.duration_seconds == 15

    def test_dose_taken_alert(self):
        alert = dose_taken_alert()
        assert alert.kind is None
        assert alert.level == "success"
        assert alert.title == "Medicine Taken"


class TestMissedDose:
    @pytest.mark.asyncio
    async def test_emitted_once_per_day(self, at, notifier):
        monitor = AlertMonitor(CareState([_medicine()], []), notifier)
        first = await monitor.check(at(2025, 3, 10, 9, 0))
        second = await monitor.check(at(2025, 3, 10, 9, 1))
        third = await monitor.check(at(2025, 3, 10, 22, 0))
        assert _kinds(first) == [NotificationKind.MISSED_DOSE]
        assert second == []
        assert third == []
        assert notifier.send_alert.await_count == 1

    @pytest.mark.asyncio
    async def test_rearmed_after_day_change(self, at, notifier):
        monitor = AlertMonitor(CareState([_medicine()], []), notifier)
        await monitor.check(at(2025, 3, 10, 9, 0))
        assert await monitor.check(at(2025, 3, 11, 7, 0)) == []
        alerts = await monitor.check(at(2025, 3, 11, 8, 1))
        assert _kinds(alerts) == [NotificationKind.MISSED_DOSE]

    @pytest.mark.asyncio
    async def test_not_emitted_before_due(self, at, notifier):
        monitor = AlertMonitor(CareState([_medicine()], []), notifier)
        assert await monitor.check(at(2025, 3, 10, 8, 0)) == []
        notifier.send_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_emitted_when_taken(self, at, notifier):
        medicine = _medicine(last_taken=at(2025, 3, 10, 7, 50))
        monitor = AlertMonitor(CareState([medicine], []), notifier)
        assert await monitor.check(at(2025, 3, 10, 9, 0)) == []


class TestLowStock:
    @pytest.mark.asyncio
    async def test_critically_low_pops_up(self, at, notifier):
        monitor = AlertMonitor(CareState([_medicine(slot=None, pills=5)], []), notifier)
        alerts = await monitor.check(at(2025, 3, 10, 9, 0))
        assert _kinds(alerts) == [NotificationKind.LOW_STOCK]

    @pytest.mark.asyncio
    async def test_low_but_not_critical_stays_in_panel_only(self, at, notifier):
        monitor = AlertMonitor(CareState([_medicine(slot=None, pills=6)], []), notifier)
        assert await monitor.check(at(2025, 3, 10, 9, 0)) == []

    @pytest.mark.asyncio
    async def test_missed_and_low_stock_together(self, at, notifier):
        monitor = AlertMonitor(CareState([_medicine(pills=2)], []), notifier)
        alerts = await monitor.check(at(2025, 3, 10, 9, 0))
        assert _kinds(alerts) == [NotificationKind.MISSED_DOSE, NotificationKind.LOW_STOCK]
        assert await monitor.check(at(2025, 3, 10, 9, 1)) == []


class TestAppointments:
    @pytest.mark.asyncio
    async def test_tomorrow_waits_for_evening(self, at, notifier):
        state = CareState([], [_appointment("a1", at(2025, 3, 11, 10, 0))])
        monitor = AlertMonitor(state, notifier)
        assert await monitor.check(at(2025, 3, 10, 16, 59)) == []
        alerts = await monitor.check(at(2025, 3, 10, 17, 0))
        assert _kinds(alerts) == [NotificationKind.APPOINTMENT_TOMORROW]
        assert await monitor.check(at(2025, 3, 10, 20, 0)) == []

    @pytest.mark.asyncio
    async def test_due_soon_fires_once(self, at, notifier):
        state = CareState([], [_appointment("a1", at(2025, 3, 10, 16, 0))])
        monitor = AlertMonitor(state, notifier)
        assert await monitor.check(at(2025, 3, 10, 13, 59)) == []
        alerts = await monitor.check(at(2025, 3, 10, 14, 30))
        assert _kinds(alerts) == [NotificationKind.APPOINTMENT_SOON]
        assert alerts[0].message == "Dr. Rao at 04:00 PM (in 90 minutes)"
        assert await monitor.check(at(2025, 3, 10, 15, 30)) == []

    @pytest.mark.asyncio
    async def test_started_appointment_never_due_soon(self, at, notifier):
        state = CareState([], [_appointment("a1", at(2025, 3, 10, 16, 0))])
        monitor = AlertMonitor(state, notifier)
        assert await monitor.check(at(2025, 3, 10, 16, 1)) == []

    @pytest.mark.asyncio
    async def test_appointments_not_loaded(self, at, notifier):
        monitor = AlertMonitor(CareState([_medicine()]), notifier)
        alerts = await monitor.check(at(2025, 3, 10, 18, 0))
        assert _kinds(alerts) == [NotificationKind.MISSED_DOSE]


class TestDelivery:
    @pytest.mark.asyncio
    async def test_failed_delivery_does_not_stop_others(self, at, notifier):
        notifier.send_alert.side_effect = [RuntimeError("network down"), None]
        monitor = AlertMonitor(CareState([_medicine(pills=2)], []), notifier)
        alerts = await monitor.check(at(2025, 3, 10, 9, 0))
        assert len(alerts) == 2
        assert notifier.send_alert.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_delivery_still_counts_as_delivered(self, at, notifier):
        notifier.send_alert.side_effect = RuntimeError("network down")
        monitor = AlertMonitor(CareState([_medicine()], []), notifier)
        await monitor.check(at(2025, 3, 10, 9, 0))
        assert await monitor.check(at(2025, 3, 10, 9, 1)) == []


class TestTakeNow:
    @pytest.mark.asyncio
    async def test_success_confirms(self, notifier, store):
        monitor = AlertMonitor(CareState([_medicine()], []), notifier, store=store)
        assert await monitor.take_now("m1") is True
        store.mark_taken.assert_awaited_once_with("m1")
        sent = notifier.send_alert.await_args.args[0]
        assert sent.title == "Medicine Taken"

    @pytest.mark.asyncio
    async def test_store_rejects(self, notifier, store):
        store.mark_taken.return_value = False
        monitor = AlertMonitor(CareState([_medicine()], []), notifier, store=store)
        assert await monitor.take_now("m1") is False
        notifier.send_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_raises(self, notifier, store):
        store.mark_taken.side_effect = RuntimeError("db locked")
        monitor = AlertMonitor(CareState([_medicine()], []), notifier, store=store)
        assert await monitor.take_now("m1") is False
        notifier.send_alert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_store(self, notifier):
        monitor = AlertMonitor(CareState([_medicine()], []), notifier)
        assert await monitor.take_now("m1") is False

    @pytest.mark.asyncio
    async def test_confirmation_failure_still_succeeds(self, notifier, store):
        notifier.send_alert.side_effect = RuntimeError("network down")
        monitor = AlertMonitor(CareState([_medicine()], []), notifier, store=store)
        assert await monitor.take_now("m1") is True

    @pytest.mark.asyncio
    async def test_leaves_delivered_keys_alone(self, at, notifier, store):
        monitor = AlertMonitor(CareState([_medicine()], []), notifier, store=store)
        await monitor.check(at(2025, 3, 10, 9, 0))
        before = monitor.tracker.delivered
        await monitor.take_now("m1")
        assert monitor.tracker.delivered == before
