"""Data models for the lock service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from joblock.db.connector import JobLock, as_utc

DEFAULT_TIMEOUT_SECONDS = 5 * 60.0
DEFAULT_HEARTBEAT_INTERVAL_SECONDS = 30.0


@dataclass
class LockOptions:
    """Per-acquisition settings."""

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    heartbeat_interval_seconds: float = DEFAULT_HEARTBEAT_INTERVAL_SECONDS
    # Falls back to the service's own instance id.
    instance_id: Optional[str] = None
    extend_on_heartbeat: bool = False

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.heartbeat_interval_seconds <= 0:
            raise ValueError(
                "heartbeat_interval_seconds must be positive, "
                f"got {self.heartbeat_interval_seconds}"
            )


@dataclass(frozen=True)
class LockInfo:
    """Status of a job name as seen by `get_lock_info`."""

    is_locked: bool
    job_name: Optional[str] = None
    lock_id: Optional[str] = None
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    heartbeat_at: Optional[datetime] = None

    @classmethod
    def unlocked(cls) -> "LockInfo":
        return cls(is_locked=False)

    @classmethod
    def from_row(cls, row: JobLock) -> "LockInfo":
        return cls(
            is_locked=True,
            job_name=row.job_name,
            lock_id=row.id,
            locked_by=row.locked_by,
            locked_at=as_utc(row.locked_at),
            expires_at=as_utc(row.expires_at),
            heartbeat_at=as_utc(row.heartbeat_at),
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view; holder fields are omitted when unlocked."""
        payload: Dict[str, Any] = {"is_locked": self.is_locked}
        for key in ("job_name", "lock_id", "locked_by"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        for key in ("locked_at", "expires_at", "heartbeat_at"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value.isoformat()
        return payload


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_HEARTBEAT_INTERVAL_SECONDS",
    "LockOptions",
    "LockInfo",
]
