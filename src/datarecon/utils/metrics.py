"""
Prometheus metrics for reconciliation runs

Usage:
    from datarecon.utils.metrics import BATCHES_TOTAL, start_metrics_server

    start_metrics_server(port=9091)
    BATCHES_TOTAL.labels(side="source", status="success").inc()
"""

import logging
from typing import Callable, TypeVar

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_or_create_metric(
    metric_factory: Callable[[], T],
    metric_name: str,
    registry: CollectorRegistry = REGISTRY,
) -> T:
    """
    Create a metric, or return the one already registered under metric_name.

    Module reloads (and test collection) would otherwise fail with a
    duplicate-timeseries ValueError.
    """
    try:
        return metric_factory()
    except ValueError:
        existing = registry._names_to_collectors.get(metric_name)
        if existing is not None:
            return existing
        raise


BATCHES_TOTAL = get_or_create_metric(
    lambda: Counter(
        "datarecon_batches_total",
        "Batches processed per pass",
        ["side", "status"],  # success, failed
    ),
    "datarecon_batches_total",
)

RECORDS_HASHED = get_or_create_metric(
    lambda: Counter(
        "datarecon_records_hashed_total",
        "Records canonicalized and hashed",
        ["side"],
    ),
    "datarecon_records_hashed_total",
)

CANONICALIZATION_ERRORS = get_or_create_metric(
    lambda: Counter(
        "datarecon_canonicalization_errors_total",
        "Records that could not be canonicalized (forced mismatches)",
        ["side"],
    ),
    "datarecon_canonicalization_errors_total",
)

STAGING_WRITE_FAILURES = get_or_create_metric(
    lambda: Counter(
        "datarecon_staging_write_failures_total",
        "Batches whose staging write failed",
        ["side"],
    ),
    "datarecon_staging_write_failures_total",
)

BATCH_SECONDS = get_or_create_metric(
    lambda: Histogram(
        "datarecon_batch_seconds",
        "Time to canonicalize, hash and stage one batch",
        ["side"],
        buckets=[0.01, 0.05, 0.1, 0.5, 1, 2.5, 5, 10, 30, 60],
    ),
    "datarecon_batch_seconds",
)

RUN_SECONDS = get_or_create_metric(
    lambda: Histogram(
        "datarecon_run_seconds",
        "Wall time of a full reconciliation run",
        buckets=[1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600, 7200],
    ),
    "datarecon_run_seconds",
)

LAST_RUN_RECORDS = get_or_create_metric(
    lambda: Gauge(
        "datarecon_last_run_records",
        "Record counts per classification from the last completed run",
        ["classification"],
    ),
    "datarecon_last_run_records",
)


def record_run_counts(counts: dict[str, int]) -> None:
    """Publish the classification counts of a finished run."""
    for classification, value in counts.items():
        LAST_RUN_RECORDS.labels(classification=classification).set(value)


def start_metrics_server(port: int = 9091) -> None:
    """Expose /metrics on the given port from a daemon thread."""
    start_http_server(port)
    logger.info(f"Metrics server listening on :{port}")
