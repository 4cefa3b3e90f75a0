"""
Unit tests for report generation and formatting
"""

import csv
import json

import pytest

from datarecon.config import ReconcileConfig
from datarecon.engine import DatasetReconciler
from datarecon.engine.context import BatchFailure
from datarecon.report import (
    Status,
    export_report_csv,
    export_report_json,
    format_report_console,
    generate_report,
    load_report_json,
    render_report,
)
from datarecon.staging import InMemoryStagingStore


@pytest.fixture
def differing_result(make_source):
    """15 differing records, 1 source-only, 1 target-only, sample cap 10"""
    source = make_source({**{i: {"v": 1} for i in range(15)}, "s": {"v": 0}})
    target = make_source({**{i: {"v": 2} for i in range(15)}, "t": {"v": 0}})
    reconciler = DatasetReconciler(source, target, InMemoryStagingStore(), ReconcileConfig())
    return reconciler.run()


class TestGenerateReport:
    """Test generate_report()"""

    def test_pass(self, make_source):
        records = {1: {"a": 1}}
        result = DatasetReconciler(
            make_source(records), make_source(records), InMemoryStagingStore()
        ).run()

        report = generate_report(result)

        assert report["status"] == Status.PASS
        assert report["counts"]["match"] == 1
        assert report["severity"] == "NONE"
        assert report["differences"] == []
        assert "All 1 records matched" in report["summary"]
        assert len(report["recommendations"]) == 1

    def test_fail(self, differing_result):
        report = generate_report(differing_result)

        assert report["status"] == Status.FAIL
        assert report["counts"] == {
            "total": 17, "match": 0, "source_only": 1, "target_only": 1, "differing": 15,
        }
        assert len(report["differences"]) == 10
        assert report["not_shown"] == 5
        assert report["target_only_sample"] == ["t"]
        assert report["source_only_sample"] == ["s"]
        assert report["severity"] == "CRITICAL"
        assert any("missing 1 records" in rec for rec in report["recommendations"])

    def test_partial(self):
        """Test batch failures make the report PARTIAL whatever the counts"""
        report = generate_report({
            "total": 10, "match": 10,
            "failed_batches": [
                BatchFailure("source", 3, 300, 100, "disk full").to_dict(),
                BatchFailure("target", 1, 100, 100, "disk full").to_dict(),
            ],
            "unresolved_count": 200,
        })
        assert report["status"] == Status.PARTIAL
        assert "Partial result due to 2 batch failure(s)" in report["summary"]
        assert "200 ids are unresolved" in report["recommendations"][0]

    def test_accepts_result_dict(self, differing_result):
        """Test the dict form gives the same report as the result object"""
        from_object = generate_report(differing_result)
        from_dict = generate_report(differing_result.to_dict())
        from_object.pop("timestamp")
        from_dict.pop("timestamp")
        assert from_object == from_dict

    @pytest.mark.parametrize(
        "total,mismatched,expected",
        [(100000, 50, "LOW"), (1000, 5, "MEDIUM"), (100, 5, "HIGH"), (10, 5, "CRITICAL"), (0, 1, "CRITICAL")],
    )
    def test_severity(self, total, mismatched, expected):
        report = generate_report({"total": total, "match": total - mismatched, "differing": mismatched})
        assert report["severity"] == expected


class TestFormatters:
    """Test console, JSON and CSV output"""

    def test_console(self, differing_result):
        text = format_report_console(generate_report(differing_result))

        assert "RECONCILIATION REPORT" in text
        assert "Status: FAIL" in text
        assert "Differing: 15" in text
        assert text.count("id: ") == 10
        assert "5 more not shown" in text

    def test_console_without_overflow(self, make_source):
        result = DatasetReconciler(
            make_source({1: {"a": 1}}), make_source({1: {"a": 2}}), InMemoryStagingStore()
        ).run()
        text = format_report_console(generate_report(result))
        assert "more not shown" not in text
        assert "DIFFERENCES" in text

    def test_console_lists_batch_failures(self):
        report = generate_report({
            "total": 1,
            "failed_batches": [BatchFailure("source", 2, 20, 10, "locked").to_dict()],
            "unresolved_count": 10,
        })
        text = format_report_console(report)
        assert "BATCH FAILURES" in text
        assert "source batch 2 (offset 20, 10 records): locked" in text
        assert "Unresolved ids: 10" in text

    def test_json_round_trip(self, differing_result, tmp_path):
        report = generate_report(differing_result)
        path = tmp_path / "report.json"

        export_report_json(report, str(path))

        assert load_report_json(str(path)) == json.loads(json.dumps(report))

    def test_csv(self, differing_result, tmp_path):
        path = tmp_path / "report.csv"
        export_report_csv(generate_report(differing_result), str(path))

        with open(path, newline="") as f:
            rows = list(csv.reader(f))

        assert rows[0] == ["id", "classification", "source_digest", "target_digest"]
        assert len(rows) == 1 + 10 + 1 + 1
        assert rows[1][1] == "differing"
        assert rows[-2] == ["t", "target_only", "", ""]
        assert rows[-1] == ["s", "source_only", "", ""]

    def test_render_report(self, differing_result):
        report = generate_report(differing_result)
        assert render_report(report, "console") == format_report_console(report)
        assert json.loads(render_report(report, "json"))["status"] == "FAIL"
        assert render_report(report, "csv").startswith("id,classification")
        with pytest.raises(ValueError):
            render_report(report, "xml")
