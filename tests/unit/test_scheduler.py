"""
Unit tests for reconciliation scheduler module

Tests verify:
- ReconciliationScheduler initialization
- Interval and cron job scheduling
- Job listing and scheduler lifecycle (start, stop)
- reconcile_job writes a timestamped report and survives failures

The APScheduler backend is mocked; jobs run against JSON Lines files.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from datarecon.config import ReconcileConfig
from datarecon.errors import TargetUnavailable
from datarecon.scheduler import ReconciliationScheduler, reconcile_job


@pytest.fixture
def mock_backend():
    return MagicMock()


class TestReconciliationSchedulerInit:
    """Test scheduler initialization"""

    def test_scheduler_initializes_with_blocking_scheduler(self):
        scheduler = ReconciliationScheduler()
        assert scheduler.scheduler is not None
        assert scheduler.jobs == []

    @patch("datarecon.scheduler.scheduler.BlockingScheduler")
    def test_scheduler_creates_blocking_scheduler_instance(self, mock_blocking_scheduler):
        ReconciliationScheduler()
        mock_blocking_scheduler.assert_called_once()


class TestIntervalJobs:
    """Test interval job scheduling"""

    def test_add_interval_job(self, mock_backend):
        scheduler = ReconciliationScheduler(scheduler=mock_backend)
        job_func = MagicMock()

        scheduler.add_interval_job(job_func, 300, "every_5_min", output_dir="/tmp/r")

        call = mock_backend.add_job.call_args
        assert call.args[0] is job_func
        assert call.kwargs["id"] == "every_5_min"
        assert call.kwargs["kwargs"] == {"output_dir": "/tmp/r"}
        assert call.kwargs["max_instances"] == 1
        assert call.kwargs["trigger"].interval.total_seconds() == 300
        assert len(scheduler.jobs) == 1

    @pytest.mark.parametrize("interval", [0, -60])
    def test_non_positive_interval_rejected(self, mock_backend, interval):
        scheduler = ReconciliationScheduler(scheduler=mock_backend)
        with pytest.raises(ValueError, match="must be positive"):
            scheduler.add_interval_job(MagicMock(), interval, "bad")
        mock_backend.add_job.assert_not_called()


class TestCronJobs:
    """Test cron job scheduling"""

    def test_add_cron_job(self, mock_backend):
        scheduler = ReconciliationScheduler(scheduler=mock_backend)

        scheduler.add_cron_job(MagicMock(), "0 */6 * * *", "six_hourly")

        trigger = mock_backend.add_job.call_args.kwargs["trigger"]
        fields = {field.name: str(field) for field in trigger.fields}
        assert fields["minute"] == "0"
        assert fields["hour"] == "*/6"
        assert len(scheduler.jobs) == 1

    @pytest.mark.parametrize("expression", ["0 */6 * *", "0 */6 * * * *", ""])
    def test_wrong_field_count(self, mock_backend, expression):
        scheduler = ReconciliationScheduler(scheduler=mock_backend)
        with pytest.raises(ValueError, match="5 parts"):
            scheduler.add_cron_job(MagicMock(), expression, "bad")


class TestLifecycle:
    """Test start, stop and list_jobs"""

    def test_start_and_interrupt(self, mock_backend):
        mock_backend.start.side_effect = KeyboardInterrupt
        scheduler = ReconciliationScheduler(scheduler=mock_backend)

        scheduler.start()

        mock_backend.shutdown.assert_called_once_with(wait=False)

    def test_list_jobs(self, mock_backend):
        job = MagicMock()
        job.id = "reconciliation_job"
        job.name = "reconcile_job"
        job.next_run_time = None
        job.trigger = "interval[1:00:00]"
        mock_backend.get_jobs.return_value = [job]

        jobs = ReconciliationScheduler(scheduler=mock_backend).list_jobs()

        assert jobs == [{
            "id": "reconciliation_job",
            "name": "reconcile_job",
            "next_run_time": None,
            "trigger": "interval[1:00:00]",
        }]


class TestReconcileJob:
    """Test the scheduled job body"""

    def test_writes_timestamped_report(self, write_jsonl, tmp_path):
        source = write_jsonl([{"id": 1, "a": 1}, {"id": 2, "a": 2}], name="s.jsonl")
        target = write_jsonl([{"id": 1, "a": 1}], name="t.jsonl")
        config = ReconcileConfig(source=f"jsonl:{source}", target=f"jsonl:{target}")
        output_dir = tmp_path / "reports"

        report = reconcile_job(config, str(output_dir))

        assert report["status"] == "FAIL"
        assert report["counts"]["source_only"] == 1
        files = list(output_dir.glob("reconcile_*.json"))
        assert len(files) == 1
        assert json.loads(files[0].read_text())["counts"] == report["counts"]

    @patch("datarecon.scheduler.jobs.execute")
    def test_failed_run_returns_none(self, mock_execute, tmp_path):
        mock_execute.side_effect = TargetUnavailable("connection refused", offset=0)
        config = ReconcileConfig(source="jsonl:a", target="jsonl:b")

        assert reconcile_job(config, str(tmp_path)) is None
        assert list(tmp_path.iterdir()) == []
