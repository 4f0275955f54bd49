"""
CareMinder — Alert Scheduler.

Runs the alert check for every active care session on each tick of a Ticker.
A failure for one user is logged and never stops the others.

This module is provider-agnostic: it depends on the Ticker, AlertPort and
CareStorePort protocols, not on specific implementations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable

from src.core.alert_monitor import AlertMonitor
from src.core.care_state import CareState
from src.core.notifications import NotificationCenter

if TYPE_CHECKING:
    from src.core.ticker import Ticker
    from src.ports.care_store_port import CareStorePort
    from src.ports.notification_port import AlertPort

logger = logging.getLogger(__name__)


@dataclass
class CareSession:
    """Everything the reminder core keeps for one user."""

    user_id: int
    state: CareState
    store: CareStorePort
    monitor: AlertMonitor
    notifications: NotificationCenter = field(init=False)

    def __post_init__(self) -> None:
        self.notifications = NotificationCenter(self.state)

    @classmethod
    def create(
        cls,
        user_id: int,
        state: CareState,
        store: CareStorePort,
        notifier: AlertPort,
    ) -> CareSession:
        monitor = AlertMonitor(state, notifier, store=store)
        return cls(user_id=user_id, state=state, store=store, monitor=monitor)


async def run_alert_checks(sessions: Iterable[CareSession], now: datetime) -> int:
    """Run one alert check per session. Returns the number of alerts emitted."""
    total = 0
    for session in sessions:
        try:
            alerts = await session.monitor.check(now)
            total += len(alerts)
        except Exception as exc:
            logger.error("Alert check failed for user %d: %s", session.user_id, exc)
    return total


class AlertScheduler:
    """Binds the alert check to a Ticker for as long as the host is active."""

    def __init__(
        self,
        ticker: Ticker,
        sessions: Callable[[], Iterable[CareSession]],
    ) -> None:
        self._ticker = ticker
        self._sessions = sessions
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._ticker.start(self._on_tick)
        self._running = True
        logger.info("Alert scheduler started")

    def stop(self) -> None:
        if not self._running:
            return
        self._ticker.stop()
        self._running = False
        logger.info("Alert scheduler stopped")

    async def _on_tick(self, now: datetime) -> int:
        return await run_alert_checks(list(self._sessions()), now)
