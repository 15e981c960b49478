"""Heartbeat management - periodic liveness updates for held leases."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, List

from joblock.monitoring.metrics import ACTIVE_HEARTBEATS, LOCK_HEARTBEATS
from joblock.utils.logging import get_logger

logger = get_logger(__name__)

# Returns False when the lease row no longer exists.
HeartbeatFn = Callable[[], Awaitable[bool]]


class HeartbeatRegistry:
    """
    Owns one asyncio task per held lock id.

    All mutations of the task map happen synchronously on the event loop
    thread, with no await between lookup and update.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, asyncio.Task[None]] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, lock_id: object) -> bool:
        return lock_id in self._tasks

    def lock_ids(self) -> List[str]:
        return list(self._tasks)

    def start(
        self,
        lock_id: str,
        job_name: str,
        interval_seconds: float,
        beat: HeartbeatFn,
    ) -> None:
        """Schedule `beat` every `interval_seconds`, replacing any previous task."""
        self.stop(lock_id)
        task = asyncio.create_task(
            self._run(lock_id, job_name, interval_seconds, beat),
            name=f"heartbeat:{job_name}:{lock_id}",
        )
        self._tasks[lock_id] = task
        ACTIVE_HEARTBEATS.set(len(self._tasks))

    def stop(self, lock_id: str) -> bool:
        """Cancel the heartbeat for `lock_id`. Unknown ids are a no-op."""
        task = self._tasks.pop(lock_id, None)
        if task is None:
            return False
        if task is not asyncio.current_task():
            task.cancel()
        ACTIVE_HEARTBEATS.set(len(self._tasks))
        return True

    def stop_all(self) -> int:
        """Cancel every heartbeat task and return how many were running."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        ACTIVE_HEARTBEATS.set(0)
        return len(tasks)

    def _forget(self, lock_id: str) -> None:
        # A replacement task may already own this slot.
        if self._tasks.get(lock_id) is asyncio.current_task():
            del self._tasks[lock_id]
            ACTIVE_HEARTBEATS.set(len(self._tasks))

    async def _run(
        self,
        lock_id: str,
        job_name: str,
        interval_seconds: float,
        beat: HeartbeatFn,
    ) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                alive = await beat()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001 - lease is left to expire
                LOCK_HEARTBEATS.labels(outcome="error").inc()
                logger.error(
                    "heartbeat_failed",
                    lock_id=lock_id,
                    job_name=job_name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                self._forget(lock_id)
                return

            if not alive:
                LOCK_HEARTBEATS.labels(outcome="missing").inc()
                logger.warning("heartbeat_lock_missing", lock_id=lock_id, job_name=job_name)
                self._forget(lock_id)
                return

            LOCK_HEARTBEATS.labels(outcome="ok").inc()
            logger.debug("heartbeat_updated", lock_id=lock_id, job_name=job_name)


__all__ = ["HeartbeatRegistry", "HeartbeatFn"]
