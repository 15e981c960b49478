"""Prometheus metrics for joblock components."""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Counters
LOCK_ACQUISITIONS = Counter(
    "joblock_acquisitions_total",
    "Lock acquisition attempts by outcome",
    ["outcome"],
)
LOCK_RELEASES = Counter(
    "joblock_releases_total",
    "Lock releases by outcome",
    ["outcome"],
)
LOCK_HEARTBEATS = Counter(
    "joblock_heartbeats_total",
    "Heartbeat updates by outcome",
    ["outcome"],
)
EXPIRED_LOCKS_SWEPT = Counter(
    "joblock_expired_locks_swept_total",
    "Expired leases removed by opportunistic sweeps",
)

# Gauges
ACTIVE_HEARTBEATS = Gauge(
    "joblock_active_heartbeats",
    "Heartbeat tasks currently running in this process",
)

# Histograms
ACQUIRE_DURATION = Histogram(
    "joblock_acquire_duration_seconds",
    "Duration of a lock acquisition attempt",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5),
)

__all__ = [
    "LOCK_ACQUISITIONS",
    "LOCK_RELEASES",
    "LOCK_HEARTBEATS",
    "EXPIRED_LOCKS_SWEPT",
    "ACTIVE_HEARTBEATS",
    "ACQUIRE_DURATION",
    "CONTENT_TYPE_LATEST",
    "generate_latest",
]
