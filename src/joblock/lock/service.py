"""Lease-based distributed locks for recurring jobs.

One `DistributedLockService` is built per process and handed to whatever
needs to coordinate with other pods. Exclusion comes entirely from the
store's conditional upsert; the service only orchestrates around it.

Examples:
    ```python
    db = LockDbConnector("postgresql+asyncpg://joblock:joblock@db/joblock")
    service = DistributedLockService(LockStore(db), instance_id="pod-7")

    async with service.locked("nightly-sync", LockOptions(timeout_seconds=600)) as lock:
        if lock is None:
            return  # another pod is running it
        await run_nightly_sync()
    ```
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, AsyncIterator, Callable, List, Optional, Tuple
from uuid import uuid4

from joblock.db.connector import LockDbConnector
from joblock.db.store import LockCandidate, LockStore
from joblock.lock.heartbeat import HeartbeatRegistry
from joblock.lock.models import LockInfo, LockOptions
from joblock.monitoring.metrics import (
    ACQUIRE_DURATION,
    EXPIRED_LOCKS_SWEPT,
    LOCK_ACQUISITIONS,
    LOCK_RELEASES,
)
from joblock.utils.logging import get_logger, log_context

if TYPE_CHECKING:
    from joblock.config.config import LockConfig


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AcquiredLock:
    """Handle for a lease this process holds."""

    def __init__(
        self,
        service: "DistributedLockService",
        *,
        job_name: str,
        instance_id: str,
        lock_id: str,
        expires_at: datetime,
        extend_by_seconds: Optional[float] = None,
    ) -> None:
        self._service = service
        self.job_name = job_name
        self.instance_id = instance_id
        self.lock_id = lock_id
        self.expires_at = expires_at
        self._extend_by_seconds = extend_by_seconds
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> bool:
        """Release the lease. Safe to call more than once."""
        if self._released:
            return False
        removed = await self._service.release_lock(self.lock_id, locked_by=self.instance_id)
        self._released = True
        return removed

    async def update_heartbeat(self) -> bool:
        """Record a heartbeat; returns False once the lease row is gone."""
        matched, expires_at = await self._service._touch(
            self.lock_id, self._extend_by_seconds
        )
        if matched and expires_at is not None:
            self.expires_at = expires_at
        return matched

    async def __aenter__(self) -> "AcquiredLock":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.release()

    def __repr__(self) -> str:
        return (
            f"<AcquiredLock(job_name={self.job_name!r}, lock_id={self.lock_id!r}, "
            f"instance_id={self.instance_id!r})>"
        )


class DistributedLockService:
    """Acquire, heartbeat and release leases on job names."""

    def __init__(
        self,
        store: LockStore,
        instance_id: Optional[str] = None,
        *,
        default_options: Optional[LockOptions] = None,
        clock: Optional[Callable[[], datetime]] = None,
        heartbeats: Optional[HeartbeatRegistry] = None,
    ) -> None:
        """
        Args:
            store: Lock store shared by every pod.
            instance_id: Identifier of this pod. Generated once when omitted.
            default_options: Options used when `acquire_lock` gets none.
            clock: Source of aware UTC timestamps.
            heartbeats: Registry owning heartbeat tasks; one per service.
        """
        self.store = store
        self.instance_id = instance_id or f"pod-{uuid4()}"
        self.default_options = default_options or LockOptions()
        self._clock = clock or _utcnow
        self.heartbeats = heartbeats or HeartbeatRegistry()
        self.logger = get_logger(
            __name__, component="distributed-lock", instance_id=self.instance_id
        )

    @classmethod
    def from_config(
        cls, config: "LockConfig", store: Optional[LockStore] = None, **kwargs
    ) -> "DistributedLockService":
        """Build a service (and, unless given, its store) from `config`."""
        if store is None:
            store = LockStore(LockDbConnector(config.db_url, echo=config.db_echo))
        return cls(
            store,
            instance_id=config.instance_id,
            default_options=config.to_lock_options(),
            **kwargs,
        )

    def now(self) -> datetime:
        return self._clock()

    async def acquire_lock(
        self, job_name: str, options: Optional[LockOptions] = None
    ) -> Optional[AcquiredLock]:
        """
        Try to take the lease on `job_name`.

        Returns:
            A handle when this instance now holds the lease, None when another
            instance holds a live lease or the store could not be reached.
        """
        if not job_name:
            raise ValueError("job_name must be a non-empty string")

        opts = options or self.default_options
        instance_id = opts.instance_id or self.instance_id
        start = time.perf_counter()

        with log_context(job_name=job_name, instance_id=instance_id):
            now = self.now()
            candidate = LockCandidate(
                id=f"lock-{uuid4()}",
                job_name=job_name,
                locked_by=instance_id,
                locked_at=now,
                expires_at=now + timedelta(seconds=opts.timeout_seconds),
                heartbeat_at=now,
            )

            try:
                await self._sweep_expired(now)
                row = await self.store.conditional_upsert(candidate, now)
            except Exception as exc:  # noqa: BLE001 - fail closed
                LOCK_ACQUISITIONS.labels(outcome="error").inc()
                self.logger.error(
                    "lock_acquire_failed",
                    job_name=job_name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return None
            finally:
                ACQUIRE_DURATION.observe(time.perf_counter() - start)

            if row is None:
                LOCK_ACQUISITIONS.labels(outcome="contended").inc()
                self.logger.info("lock_contended", job_name=job_name)
                return None

            if row.locked_by != instance_id:
                LOCK_ACQUISITIONS.labels(outcome="lost_race").inc()
                self.logger.warning(
                    "lock_held_by_other_instance",
                    job_name=job_name,
                    locked_by=row.locked_by,
                )
                return None

            lock = AcquiredLock(
                self,
                job_name=job_name,
                instance_id=instance_id,
                lock_id=row.id,
                expires_at=candidate.expires_at,
                extend_by_seconds=opts.timeout_seconds if opts.extend_on_heartbeat else None,
            )
            self.heartbeats.start(
                row.id, job_name, opts.heartbeat_interval_seconds, lock.update_heartbeat
            )

            LOCK_ACQUISITIONS.labels(outcome="acquired").inc()
            self.logger.info(
                "lock_acquired",
                job_name=job_name,
                lock_id=row.id,
                expires_at=candidate.expires_at.isoformat(),
                heartbeat_interval_seconds=opts.heartbeat_interval_seconds,
            )
            return lock

    async def release_lock(self, lock_id: str, locked_by: Optional[str] = None) -> bool:
        """
        Stop the heartbeat for `lock_id` and delete its row.

        Only the row with this exact id (and holder, when given) is removed,
        so a lease taken over by another pod is never touched.

        Returns:
            True if a row was deleted.
        """
        self.heartbeats.stop(lock_id)
        try:
            removed = await self.store.delete_by_id(lock_id, locked_by=locked_by)
        except Exception:
            LOCK_RELEASES.labels(outcome="error").inc()
            self.logger.exception("lock_release_failed", lock_id=lock_id)
            raise

        if removed:
            LOCK_RELEASES.labels(outcome="released").inc()
            self.logger.info("lock_released", lock_id=lock_id)
        else:
            LOCK_RELEASES.labels(outcome="missing").inc()
            self.logger.debug("lock_already_released", lock_id=lock_id)
        return removed

    async def update_heartbeat(
        self, lock_id: str, extend_by_seconds: Optional[float] = None
    ) -> bool:
        """
        Set `heartbeat_at` to now on the lease with this id.

        The deadline stays where it is unless `extend_by_seconds` is given.
        Store errors propagate to the caller.
        """
        matched, _ = await self._touch(lock_id, extend_by_seconds)
        return matched

    async def _touch(
        self, lock_id: str, extend_by_seconds: Optional[float]
    ) -> Tuple[bool, Optional[datetime]]:
        now = self.now()
        expires_at = None
        if extend_by_seconds is not None:
            expires_at = now + timedelta(seconds=extend_by_seconds)
        matched = await self.store.touch_heartbeat(lock_id, now, expires_at=expires_at)
        return matched, expires_at

    async def is_locked(self, job_name: str) -> bool:
        info = await self.get_lock_info(job_name)
        return info.is_locked

    async def get_lock_info(self, job_name: str) -> LockInfo:
        """Sweep expired leases, then report who holds `job_name`."""
        now = self.now()
        await self._sweep_expired(now)
        try:
            row = await self.store.find_by_job_name(job_name)
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "lock_status_failed",
                job_name=job_name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return LockInfo.unlocked()

        if row is None or row.is_expired(now):
            return LockInfo.unlocked()
        return LockInfo.from_row(row)

    async def list_active_locks(self) -> List[LockInfo]:
        now = self.now()
        await self._sweep_expired(now)
        rows = await self.store.list_locks(now)
        return [LockInfo.from_row(row) for row in rows]

    async def _sweep_expired(self, now: datetime) -> int:
        try:
            removed = await self.store.delete_expired(now)
        except Exception as exc:  # noqa: BLE001 - sweep is advisory
            self.logger.error(
                "expired_lock_sweep_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return 0

        if removed:
            EXPIRED_LOCKS_SWEPT.inc(removed)
            self.logger.info("expired_locks_swept", removed=removed, cutoff=now.isoformat())
        return removed

    async def sweep_expired(self) -> int:
        """Remove every expired lease now; returns how many were removed."""
        return await self._sweep_expired(self.now())

    @asynccontextmanager
    async def locked(
        self, job_name: str, options: Optional[LockOptions] = None
    ) -> AsyncIterator[Optional[AcquiredLock]]:
        """Yield the lease handle (None on contention) and release it on exit."""
        lock = await self.acquire_lock(job_name, options)
        try:
            yield lock
        finally:
            if lock is not None:
                await lock.release()

    def cleanup(self) -> None:
        """Stop every heartbeat task. Rows are left to expire on their own."""
        stopped = self.heartbeats.stop_all()
        self.logger.info("heartbeats_cleaned_up", stopped=stopped)


__all__ = ["AcquiredLock", "DistributedLockService"]
