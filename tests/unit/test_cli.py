"""
Unit tests for CLI module

Tests for the command-line interface functionality including
argument parsing, configuration precedence, and command execution
against JSON Lines datasets.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from datarecon.cli import build_config, cmd_report, cmd_run, cmd_schedule, create_parser, main
from datarecon.cli.commands import EXIT_FATAL, EXIT_MISMATCH, EXIT_PASS
from datarecon.errors import SourceUnavailable


@pytest.fixture
def datasets(write_jsonl):
    """Source and target files with one differing and one target-only record"""
    source = write_jsonl(
        [
            {"id": 1, "name": "alice", "updatedAt": "2024-01-01"},
            {"id": 2, "name": "bob", "updatedAt": "2024-01-01"},
        ],
        name="source.jsonl",
    )
    target = write_jsonl(
        [
            {"id": 1, "name": "alice", "updatedAt": "2024-06-01"},
            {"id": 2, "name": "robert", "updatedAt": "2024-01-01"},
            {"id": 3, "name": "carol", "updatedAt": "2024-01-01"},
        ],
        name="target.jsonl",
    )
    return source, target


def _run_args(*argv):
    return create_parser().parse_args(["run", *argv])


class TestParser:
    """Tests for create_parser"""

    def test_run_defaults(self):
        args = _run_args("--source", "jsonl:a", "--target", "jsonl:b")
        assert args.command == "run"
        assert args.format == "console"
        assert args.batch_size is None
        assert args.use_vault is False

    def test_run_all_options(self):
        args = _run_args(
            "--source", "jsonl:a",
            "--target", "jsonl:b",
            "--exclude", "updatedAt,syncedAt",
            "--id-field", "key",
            "--batch-size", "100",
            "--sample-cap", "5",
            "--workers", "4",
            "--staging", "sqlite:/tmp/s.db",
            "--hash-algorithm", "blake2b",
            "--format", "json",
            "--output", "out.json",
        )
        assert args.exclude == "updatedAt,syncedAt"
        assert args.batch_size == 100
        assert args.workers == 4
        assert args.hash_algorithm == "blake2b"
        assert args.output == "out.json"

    def test_unknown_hash_algorithm_rejected(self):
        with pytest.raises(SystemExit):
            _run_args("--hash-algorithm", "md5")

    def test_schedule_defaults(self):
        args = create_parser().parse_args(["schedule"])
        assert args.interval == 3600
        assert args.cron is None
        assert args.output_dir == "./reconciliation_reports"

    def test_report_requires_input(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["report"])


class TestBuildConfig:
    """Tests for build_config: environment first, flags on top"""

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("DATARECON_BATCH_SIZE", "500")
        monkeypatch.setenv("DATARECON_SAMPLE_CAP", "3")
        args = _run_args("--source", "jsonl:a", "--target", "jsonl:b", "--batch-size", "20")

        config = build_config(args)

        assert config.batch_size == 20
        assert config.sample_cap == 3
        assert config.source == "jsonl:a"

    def test_exclude_flag(self):
        config = build_config(_run_args("--exclude", "updatedAt, syncedAt"))
        assert config.excluded_fields == frozenset({"updatedAt", "syncedAt"})

    def test_empty_exclude_flag_clears_environment(self, monkeypatch):
        monkeypatch.setenv("DATARECON_EXCLUDE", "updatedAt")
        config = build_config(_run_args("--exclude", ""))
        assert config.excluded_fields == frozenset()

    def test_invalid_flag_value(self):
        with pytest.raises(ValueError):
            build_config(_run_args("--batch-size", "0"))


class TestCmdRun:
    """Tests for cmd_run"""

    def test_mismatch_exit_code_and_console_report(self, datasets, capsys):
        source, target = datasets
        code = cmd_run(_run_args(
            "--source", f"jsonl:{source}",
            "--target", f"jsonl:{target}",
            "--exclude", "updatedAt",
        ))

        assert code == EXIT_MISMATCH
        output = capsys.readouterr().out
        assert "Status: FAIL" in output
        assert "Differing: 1" in output
        assert "Target only: 1" in output

    def test_pass_exit_code(self, write_jsonl, capsys):
        records = [{"id": i, "v": i} for i in range(5)]
        source = write_jsonl(records, name="s.jsonl")
        target = write_jsonl(list(reversed(records)), name="t.jsonl")

        code = cmd_run(_run_args(
            "--source", f"jsonl:{source}", "--target", f"jsonl:{target}", "--batch-size", "2"
        ))

        assert code == EXIT_PASS
        assert "Status: PASS" in capsys.readouterr().out

    def test_json_output(self, datasets, tmp_path):
        source, target = datasets
        output = tmp_path / "reports" / "report.json"

        cmd_run(_run_args(
            "--source", f"jsonl:{source}",
            "--target", f"jsonl:{target}",
            "--format", "json",
            "--output", str(output),
        ))

        report = json.loads(output.read_text())
        assert report["status"] == "FAIL"
        # updatedAt not excluded: id 1 differs too
        assert report["counts"]["differing"] == 2
        assert report["target_only_sample"] == [3]

    def test_missing_target_is_fatal(self, datasets):
        source, _ = datasets
        assert cmd_run(_run_args("--source", f"jsonl:{source}")) == EXIT_FATAL

    def test_missing_file_is_fatal(self, tmp_path):
        code = cmd_run(_run_args(
            "--source", f"jsonl:{tmp_path / 'nope.jsonl'}",
            "--target", f"jsonl:{tmp_path / 'nope.jsonl'}",
        ))
        assert code == EXIT_FATAL

    @patch("datarecon.cli.commands.execute")
    def test_unavailable_source_is_fatal(self, mock_execute):
        mock_execute.side_effect = SourceUnavailable("connection reset", offset=100)
        code = cmd_run(_run_args("--source", "jsonl:a", "--target", "jsonl:b"))
        assert code == EXIT_FATAL

    @patch("datarecon.cli.commands.execute")
    def test_use_vault_passed_through(self, mock_execute, make_source):
        from datarecon.engine import DatasetReconciler
        from datarecon.staging import InMemoryStagingStore

        result = DatasetReconciler(
            make_source({1: {"a": 1}}), make_source({1: {"a": 1}}), InMemoryStagingStore()
        ).run()
        mock_execute.return_value = result

        code = cmd_run(_run_args(
            "--source", "postgres:users", "--target", "sqlserver:dbo.users", "--use-vault"
        ))

        assert code == EXIT_PASS
        assert mock_execute.call_args.kwargs["use_vault"] is True


class TestCmdSchedule:
    """Tests for cmd_schedule"""

    @patch("datarecon.cli.commands.ReconciliationScheduler")
    def test_interval(self, mock_scheduler_class, tmp_path):
        scheduler = MagicMock()
        mock_scheduler_class.return_value = scheduler
        args = create_parser().parse_args([
            "schedule",
            "--source", "jsonl:a",
            "--target", "jsonl:b",
            "--interval", "600",
            "--output-dir", str(tmp_path / "out"),
        ])

        assert cmd_schedule(args) == EXIT_PASS

        scheduler.add_interval_job.assert_called_once()
        call = scheduler.add_interval_job.call_args
        assert call.args[1] == 600
        assert call.kwargs["config"].source == "jsonl:a"
        assert call.kwargs["output_dir"] == str(tmp_path / "out")
        scheduler.start.assert_called_once()
        assert (tmp_path / "out").is_dir()

    @patch("datarecon.cli.commands.ReconciliationScheduler")
    def test_cron(self, mock_scheduler_class, tmp_path):
        scheduler = MagicMock()
        mock_scheduler_class.return_value = scheduler
        args = create_parser().parse_args([
            "schedule",
            "--source", "jsonl:a",
            "--target", "jsonl:b",
            "--cron", "0 */6 * * *",
            "--output-dir", str(tmp_path),
        ])

        assert cmd_schedule(args) == EXIT_PASS
        assert scheduler.add_cron_job.call_args.args[1] == "0 */6 * * *"
        scheduler.add_interval_job.assert_not_called()

    @patch("datarecon.cli.commands.ReconciliationScheduler")
    def test_requires_source_and_target(self, mock_scheduler_class, tmp_path):
        args = create_parser().parse_args(["schedule", "--output-dir", str(tmp_path)])
        assert cmd_schedule(args) == EXIT_FATAL
        mock_scheduler_class.return_value.start.assert_not_called()


class TestCmdReport:
    """Tests for cmd_report"""

    @pytest.fixture
    def saved_report(self, datasets, tmp_path):
        source, target = datasets
        path = tmp_path / "saved.json"
        cmd_run(_run_args(
            "--source", f"jsonl:{source}",
            "--target", f"jsonl:{target}",
            "--exclude", "updatedAt",
            "--format", "json",
            "--output", str(path),
        ))
        return path

    def test_console(self, saved_report, capsys):
        args = create_parser().parse_args(["report", "--input", str(saved_report)])
        assert cmd_report(args) == EXIT_PASS
        assert "RECONCILIATION REPORT" in capsys.readouterr().out

    def test_csv(self, saved_report, tmp_path):
        output = tmp_path / "report.csv"
        args = create_parser().parse_args([
            "report", "--input", str(saved_report), "--format", "csv", "--output", str(output)
        ])
        assert cmd_report(args) == EXIT_PASS
        lines = output.read_text().splitlines()
        assert lines[0] == "id,classification,source_digest,target_digest"
        assert any(line.startswith("2,differing,") for line in lines)
        assert "3,target_only,," in lines

    def test_csv_without_output(self, saved_report):
        args = create_parser().parse_args(
            ["report", "--input", str(saved_report), "--format", "csv"]
        )
        assert cmd_report(args) == EXIT_FATAL

    def test_missing_input(self, tmp_path):
        args = create_parser().parse_args(["report", "--input", str(tmp_path / "missing.json")])
        assert cmd_report(args) == EXIT_FATAL


class TestMain:
    """Tests for main entry point"""

    @patch("datarecon.cli.setup_logging")
    def test_no_command_prints_help(self, mock_setup_logging, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == EXIT_FATAL
        assert "usage" in capsys.readouterr().out.lower()

    @patch("datarecon.cli.shutdown_tracing")
    @patch("datarecon.cli.setup_logging")
    def test_exit_code_from_command(self, mock_setup_logging, mock_shutdown, datasets):
        source, target = datasets
        with pytest.raises(SystemExit) as exc_info:
            main(["--log-level", "DEBUG", "run", "--source", f"jsonl:{source}",
                  "--target", f"jsonl:{target}"])

        assert exc_info.value.code == EXIT_MISMATCH
        mock_setup_logging.assert_called_once_with("DEBUG", log_file=None, json_format=False)
        mock_shutdown.assert_called_once()

    @patch("datarecon.cli.start_metrics_server")
    @patch("datarecon.cli.initialize_tracing")
    @patch("datarecon.cli.shutdown_tracing")
    @patch("datarecon.cli.setup_logging")
    def test_metrics_and_tracing_flags(
        self, mock_setup_logging, mock_shutdown, mock_init_tracing, mock_metrics, tmp_path
    ):
        with pytest.raises(SystemExit):
            main([
                "--metrics-port", "9191",
                "--otlp-endpoint", "collector:4317",
                "report", "--input", str(tmp_path / "missing.json"),
            ])

        mock_metrics.assert_called_once_with(9191)
        mock_init_tracing.assert_called_once_with(otlp_endpoint="collector:4317")
