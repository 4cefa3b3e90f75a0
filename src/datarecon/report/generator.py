"""
Report generation from reconciliation results.

A report is a plain dict: counts, status, the capped differing sample, batch
failures, a one-line summary and recommendations. It is what the formatters
render and what `datarecon report` reloads from JSON.
"""

from datetime import UTC, datetime
from typing import Any


class Status:
    """Constants for report status."""

    PASS = "PASS"
    FAIL = "FAIL"
    PARTIAL = "PARTIAL"


def _result_dict(result: Any) -> dict[str, Any]:
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return dict(result)


def generate_report(result: Any) -> dict[str, Any]:
    """
    Generate a report from a ReconciliationResult (or its to_dict())

    Returns:
        Dictionary containing:
        - status: PASS, FAIL or PARTIAL
        - counts: total, match, source_only, target_only, differing
        - differences: up to sample_cap {id, source_digest, target_digest}
        - not_shown: differing entries left out of `differences`
        - target_only_sample / source_only_sample: capped id lists
        - failed_batches, unresolved_count: batch failure ledger
        - severity, summary, recommendations
        - timestamp: Report generation timestamp
    """
    data = _result_dict(result)
    counts = {
        key: int(data.get(key, 0))
        for key in ("total", "match", "source_only", "target_only", "differing")
    }
    failed_batches = list(data.get("failed_batches", []))
    mismatched = counts["source_only"] + counts["target_only"] + counts["differing"]

    if failed_batches:
        status = Status.PARTIAL
    elif mismatched == 0:
        status = Status.PASS
    else:
        status = Status.FAIL

    differences = list(data.get("differing_sample", []))
    not_shown = data.get("not_shown", max(counts["differing"] - len(differences), 0))

    return {
        "status": status,
        "run_id": data.get("run_id"),
        "source": data.get("source", ""),
        "target": data.get("target", ""),
        "counts": counts,
        "differences": differences,
        "not_shown": not_shown,
        "target_only_sample": list(data.get("target_only_sample", [])),
        "source_only_sample": list(data.get("source_only_sample", [])),
        "canonicalization_errors": dict(data.get("canonicalization_errors", {})),
        "failed_batches": failed_batches,
        "unresolved_count": data.get("unresolved_count", 0),
        "unresolved_sample": list(data.get("unresolved_sample", [])),
        "excluded_fields": list(data.get("excluded_fields", [])),
        "hash_algorithm": data.get("hash_algorithm", ""),
        "duration_seconds": data.get("duration_seconds", 0.0),
        "severity": _calculate_severity(counts["total"], mismatched),
        "summary": _generate_summary(status, counts, mismatched, len(failed_batches)),
        "recommendations": _generate_recommendations(counts, data, failed_batches),
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _calculate_severity(total: int, mismatched: int) -> str:
    """
    Severity from the share of ids that are not a match

    Returns:
        Severity level: NONE, LOW, MEDIUM, HIGH, or CRITICAL
    """
    if mismatched == 0:
        return "NONE"
    percentage = (mismatched / total) * 100 if total else 100.0

    if percentage < 0.1:
        return "LOW"
    elif percentage < 1.0:
        return "MEDIUM"
    elif percentage < 10.0:
        return "HIGH"
    else:
        return "CRITICAL"


def _generate_summary(status: str, counts: dict[str, int], mismatched: int, failures: int) -> str:
    total = counts["total"]
    if status == Status.PARTIAL:
        return (
            f"Partial result due to {failures} batch failure(s). "
            f"{counts['match']} of {total} records matched among resolved ids."
        )
    if status == Status.PASS:
        return f"All {total} records matched. Datasets are consistent."
    return (
        f"Found {mismatched} of {total} records out of sync: "
        f"{counts['source_only']} source-only, {counts['target_only']} target-only, "
        f"{counts['differing']} differing."
    )


def _generate_recommendations(
    counts: dict[str, int],
    data: dict[str, Any],
    failed_batches: list[dict[str, Any]],
) -> list[str]:
    recommendations = []

    if failed_batches:
        recommendations.append(
            f"{len(failed_batches)} batch(es) failed to stage; "
            f"{data.get('unresolved_count', 0)} ids are unresolved. "
            "Check the staging store and re-run for a complete result."
        )

    if counts["source_only"]:
        recommendations.append(
            f"Target is missing {counts['source_only']} records. "
            "Check whether the last sync finished and re-sync the missing ids."
        )

    if counts["target_only"]:
        recommendations.append(
            f"Target has {counts['target_only']} records absent from source. "
            "Investigate deletes that did not propagate or stray inserts."
        )

    if counts["differing"]:
        recommendations.append(
            f"{counts['differing']} records differ in content. "
            "Compare the sampled ids field by field; add volatile fields to the "
            "exclusion list if they are expected to differ."
        )

    if sum(data.get("canonicalization_errors", {}).values()):
        recommendations.append(
            "Some records could not be canonicalized and were forced to mismatch. "
            "Check the logs for the offending ids and their field types."
        )

    if not recommendations:
        recommendations.append("Data is consistent. Keep reconciling on a schedule.")

    return recommendations
