"""
Lease-based distributed locking.
"""

from joblock.lock.heartbeat import HeartbeatRegistry
from joblock.lock.models import (
    DEFAULT_HEARTBEAT_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    LockInfo,
    LockOptions,
)
from joblock.lock.service import AcquiredLock, DistributedLockService

__all__ = [
    "AcquiredLock",
    "DistributedLockService",
    "HeartbeatRegistry",
    "LockInfo",
    "LockOptions",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_HEARTBEAT_INTERVAL_SECONDS",
]
