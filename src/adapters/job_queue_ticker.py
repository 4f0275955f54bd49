"""JobQueue ticker adapter — implements Ticker on python-telegram-bot's JobQueue.

One-shot tick shortly after start, then one tick per interval.
"""

from __future__ import annotations

import logging

from telegram.ext import ContextTypes, JobQueue

from src.config import settings
from src.core.ticker import TickHandler
from src.core.time_utils import now

logger = logging.getLogger(__name__)


class JobQueueTicker:
    """Telegram JobQueue implementation of Ticker."""

    def __init__(
        self,
        job_queue: JobQueue,
        interval_seconds: int | None = None,
        first_delay_seconds: int | None = None,
        name: str = "alert_check",
    ) -> None:
        self._job_queue = job_queue
        self._interval = interval_seconds or settings.CHECK_INTERVAL_SECONDS
        self._first_delay = (
            settings.INITIAL_CHECK_DELAY_SECONDS
            if first_delay_seconds is None else first_delay_seconds
        )
        self._name = name
        self._started = False

    def start(self, handler: TickHandler) -> None:
        if self._started:
            self.stop()

        async def _tick_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
            await handler(now())

        self._job_queue.run_once(
            _tick_callback, when=self._first_delay, name=f"{self._name}_initial",
        )
        self._job_queue.run_repeating(
            _tick_callback,
            interval=self._interval,
            first=self._interval,
            name=self._name,
        )
        self._started = True
        logger.info(
            "Alert checks scheduled: first in %ds, then every %ds",
            self._first_delay, self._interval,
        )

    def stop(self) -> None:
        """Remove pending jobs; a one-shot tick that already ran is gone already."""
        for name in (f"{self._name}_initial", self._name):
            for job in self._job_queue.get_jobs_by_name(name):
                job.schedule_removal()
        if self._started:
            logger.info("Alert checks '%s' stopped", self._name)
        self._started = False
