"""
Monitoring utilities for joblock.
"""

from joblock.monitoring.metrics import (
    ACQUIRE_DURATION,
    ACTIVE_HEARTBEATS,
    CONTENT_TYPE_LATEST,
    EXPIRED_LOCKS_SWEPT,
    LOCK_ACQUISITIONS,
    LOCK_HEARTBEATS,
    LOCK_RELEASES,
    generate_latest,
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
