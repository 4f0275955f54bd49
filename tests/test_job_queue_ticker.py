"""Tests for src.adapters.job_queue_ticker — JobQueue-backed ticks."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.adapters.job_queue_ticker import JobQueueTicker


@pytest.fixture
def job_queue():
    return MagicMock()


class TestStart:
    def test_schedules_initial_and_repeating_jobs(self, job_queue):
        ticker = JobQueueTicker(job_queue)
        ticker.start(AsyncMock())

        once = job_queue.run_once.call_args
        assert once.kwargs["when"] == 2
        assert once.kwargs["name"] == "alert_check_initial"

        repeating = job_queue.run_repeating.call_args
        assert repeating.kwargs["interval"] == 60
        assert repeating.kwargs["first"] == 60
        assert repeating.kwargs["name"] == "alert_check"

    def test_custom_timing(self, job_queue):
        ticker = JobQueueTicker(job_queue, interval_seconds=30, first_delay_seconds=0)
        ticker.start(AsyncMock())
        assert job_queue.run_once.call_args.kwargs["when"] == 0
        assert job_queue.run_repeating.call_args.kwargs["interval"] == 30

    @pytest.mark.asyncio
    async def test_callback_passes_current_time(self, job_queue, at):
        handler = AsyncMock()
        ticker = JobQueueTicker(job_queue)
        ticker.start(handler)
        callback = job_queue.run_repeating.call_args.args[0]

        with patch("src.adapters.job_queue_ticker.now", return_value=at(2025, 3, 10, 9, 0)):
            await callback(MagicMock())

        handler.assert_awaited_once_with(at(2025, 3, 10, 9, 0))

    def test_restart_removes_previous_jobs(self, job_queue):
        job = MagicMock()
        job_queue.get_jobs_by_name.return_value = [job]
        ticker = JobQueueTicker(job_queue)
        ticker.start(AsyncMock())
        ticker.start(AsyncMock())
        assert job.schedule_removal.call_count == 2
        assert job_queue.run_repeating.call_count == 2


class TestStop:
    def test_removes_jobs_by_name(self, job_queue):
        initial, repeating = MagicMock(), MagicMock()
        job_queue.get_jobs_by_name.side_effect = lambda name: {
            "alert_check_initial": [initial],
            "alert_check": [repeating],
        }[name]
        ticker = JobQueueTicker(job_queue)
        ticker.start(AsyncMock())
        ticker.stop()
        initial.schedule_removal.assert_called_once()
        repeating.schedule_removal.assert_called_once()

    def test_stop_after_initial_tick_ran(self, job_queue):
        repeating = MagicMock()
        job_queue.get_jobs_by_name.side_effect = lambda name: (
            [repeating] if name == "alert_check" else []
        )
        ticker = JobQueueTicker(job_queue)
        ticker.start(AsyncMock())
        ticker.stop()
        repeating.schedule_removal.assert_called_once()
