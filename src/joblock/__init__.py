"""joblock - lease-based distributed locks for recurring jobs."""

__version__ = "0.1.0"

from .config import LockConfig
from .db import JobLock, LockDbConnector, LockStore
from .lock import (
    AcquiredLock,
    DistributedLockService,
    HeartbeatRegistry,
    LockInfo,
    LockOptions,
)

__all__ = [
    "AcquiredLock",
    "DistributedLockService",
    "HeartbeatRegistry",
    "JobLock",
    "LockConfig",
    "LockDbConnector",
    "LockInfo",
    "LockOptions",
    "LockStore",
]
