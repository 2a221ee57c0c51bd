"""Unit tests for scheduled tasks job coordination.

Tests the scheduling logic and error handling without executing the actual
deferred deliveries.
"""

import threading
from unittest.mock import MagicMock, patch

import pytest

from infrastructure.notifications.models import NotificationChannel
from jobs.scheduled_tasks import init, run_continuously, safe_run, scheduler_heartbeat
from tests.fixtures.notification_providers import FakeProvider


@pytest.mark.unit
class TestSafeRun:
    """Tests for the safe_run error handling wrapper."""

    @patch("jobs.scheduled_tasks.logger")
    def test_safe_run_returns_job_result(self, mock_logger):
        job = MagicMock(return_value={"sent": 1})
        job.__name__ = "process_scheduled_notifications"

        assert safe_run(job)() == {"sent": 1}
        mock_logger.error.assert_not_called()

    @patch("jobs.scheduled_tasks.logger")
    def test_safe_run_catches_and_logs_exception(self, mock_logger):
        def failing_job():
            raise ValueError("sweep failed")

        result = safe_run(failing_job)()

        assert result is None
        error_call = mock_logger.error.call_args
        assert error_call[0][0] == "scheduled_job_failed"
        assert error_call[1]["job"] == "failing_job"
        assert error_call[1]["error"] == "sweep failed"

    @patch("jobs.scheduled_tasks.logger")
    def test_safe_run_passes_arguments(self, mock_logger):
        job = MagicMock()
        job.__name__ = "job"

        safe_run(job)("a", key="value")

        job.assert_called_once_with("a", key="value")


@pytest.mark.unit
class TestInit:
    """Tests for registering the deferred delivery jobs."""

    def test_registers_sweep_purge_and_heartbeat(self, unconfigured_settings):
        jobs = MagicMock()
        delivery_scheduler = MagicMock()

        returned = init(delivery_scheduler, unconfigured_settings, job_scheduler=jobs)

        assert returned is jobs
        intervals = [c.args[0] for c in jobs.every.call_args_list]
        assert intervals == [30, 300, 5]

    @patch("jobs.scheduled_tasks.schedule")
    def test_defaults_to_module_scheduler(self, mock_schedule, unconfigured_settings):
        assert init(MagicMock(), unconfigured_settings) is mock_schedule
        assert mock_schedule.every.call_count == 3


@pytest.mark.unit
class TestSchedulerHeartbeat:
    @patch("jobs.scheduled_tasks.get_all_circuit_breaker_stats", return_value={})
    @patch("jobs.scheduled_tasks.logger")
    def test_logs_scheduler_stats(self, mock_logger, _mock_stats):
        delivery_scheduler = MagicMock()
        delivery_scheduler.get_scheduler_stats.return_value = {"total": 2, "due": 1}

        scheduler_heartbeat(delivery_scheduler)

        mock_logger.info.assert_called_once_with(
            "scheduler_heartbeat", circuit_breakers={}, total=2, due=1
        )
        mock_logger.warning.assert_not_called()

    @patch("jobs.scheduled_tasks.get_all_circuit_breaker_stats")
    @patch("jobs.scheduled_tasks.logger")
    def test_reports_circuit_breaker_states(self, mock_logger, mock_stats):
        mock_stats.return_value = {
            "sendgrid_provider": {
                "name": "sendgrid_provider",
                "state": "closed",
                "failure_count": 0,
                "last_failure_time": None,
            },
            "twilio_provider": {
                "name": "twilio_provider",
                "state": "open",
                "failure_count": 5,
                "last_failure_time": "2024-01-01T12:00:00+00:00",
            },
        }
        delivery_scheduler = MagicMock()
        delivery_scheduler.get_scheduler_stats.return_value = {"total": 0, "due": 0}

        scheduler_heartbeat(delivery_scheduler)

        mock_logger.info.assert_called_once_with(
            "scheduler_heartbeat",
            circuit_breakers={"sendgrid_provider": "closed", "twilio_provider": "open"},
            total=0,
            due=0,
        )
        mock_logger.warning.assert_called_once_with(
            "circuit_breaker_not_closed",
            circuit_breaker="twilio_provider",
            state="open",
            failure_count=5,
            last_failure_time="2024-01-01T12:00:00+00:00",
        )

    @patch("jobs.scheduled_tasks.logger")
    def test_includes_registered_provider_breakers(self, mock_logger):
        FakeProvider("heartbeat_sms", NotificationChannel.SMS)
        delivery_scheduler = MagicMock()
        delivery_scheduler.get_scheduler_stats.return_value = {}

        scheduler_heartbeat(delivery_scheduler)

        _, kwargs = mock_logger.info.call_args
        assert kwargs["circuit_breakers"]["heartbeat_sms_provider"] == "closed"



@pytest.mark.unit
class TestRunContinuously:
    """Tests for the background job loop."""

    def test_runs_pending_until_stopped(self):
        jobs = MagicMock()
        ran = threading.Event()
        jobs.run_pending.side_effect = lambda: ran.set()

        stop = run_continuously(jobs, interval=0.01)
        try:
            assert ran.wait(5)
        finally:
            stop.set()

        assert isinstance(stop, threading.Event)
        assert jobs.run_pending.called

    def test_thread_is_named_daemon(self):
        jobs = MagicMock()

        stop = run_continuously(jobs, interval=0.01)
        try:
            threads = [t for t in threading.enumerate() if t.name == "delivery-scheduler"]
            assert threads
            assert all(t.daemon for t in threads)
        finally:
            stop.set()
