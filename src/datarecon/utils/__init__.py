"""
Ambient support for reconciliation runs

Provides:
- logging: console/JSON log setup and a run-context logger
- tracing: OpenTelemetry spans
- metrics: Prometheus counters and histograms
- retry: backoff for transient record-store errors
- vault: credential lookups
"""

__all__ = ["logging", "tracing", "metrics", "retry", "vault"]
