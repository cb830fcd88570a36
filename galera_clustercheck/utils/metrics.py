"""Prometheus metrics for the cluster check.

All metric objects are defined at import time and exposed on /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

clustercheck_requests_total = Counter(
    "clustercheck_requests_total",
    "Probe requests by endpoint and response status",
    ["endpoint", "status"],
)
clustercheck_query_duration_seconds = Histogram(
    "clustercheck_query_duration_seconds",
    "Duration of a single status query",
    ["variable"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
)
clustercheck_query_errors_total = Counter(
    "clustercheck_query_errors_total",
    "Status queries that failed or timed out",
    ["variable", "code"],
)
clustercheck_override_active = Gauge(
    "clustercheck_override_active",
    "Operator override flag (1 when set)",
    ["override"],
)


def record_request(endpoint: str, status_code: int) -> None:
    clustercheck_requests_total.labels(endpoint=endpoint, status=str(status_code)).inc()


def record_overrides(forced_up: bool, forced_down: bool) -> None:
    clustercheck_override_active.labels(override="up").set(1 if forced_up else 0)
    clustercheck_override_active.labels(override="down").set(1 if forced_down else 0)
