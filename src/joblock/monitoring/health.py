"""Health checks for lock-store backed services and Kubernetes probes."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import text

from joblock.lock.service import DistributedLockService


def _isoformat(dt: Optional[datetime]) -> Optional[str]:
    if not dt:
        return None
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


class HealthChecker:
    """Runs async health checks across the lock store and heartbeat tasks."""

    def __init__(
        self,
        service: DistributedLockService,
        *,
        timeout_seconds: float = 5.0,
    ):
        self.service = service
        self.db = service.store.db
        self.timeout = min(timeout_seconds, 5.0) if timeout_seconds else 5.0
        self.start_time = datetime.now(timezone.utc)

    async def check_database(self) -> Dict[str, Any]:
        """Test DB connection with SELECT 1."""
        start = time.perf_counter()
        status = "ok"
        error: Optional[str] = None

        async def _probe() -> None:
            async with self.db.session_factory() as session:
                await session.execute(text("SELECT 1"))

        try:
            await asyncio.wait_for(_probe(), timeout=self.timeout)
        except asyncio.TimeoutError:
            status = "timeout"
        except Exception as exc:  # noqa: BLE001 - surface error in payload
            status = "error"
            error = str(exc)

        latency_ms = int((time.perf_counter() - start) * 1000)
        result: Dict[str, Any] = {"status": status, "latency_ms": latency_ms}
        if error:
            result["error"] = error
        return result

    async def check_job_locks(self) -> Dict[str, Any]:
        """Return job lock status (held vs expired)."""
        start = time.perf_counter()
        held = 0
        expired = 0
        status = "ok"
        error: Optional[str] = None

        try:
            held, expired = await asyncio.wait_for(
                self.service.store.count_locks(self.service.now()),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            status = "timeout"
        except Exception as exc:  # noqa: BLE001
            status = "error"
            error = str(exc)

        latency_ms = int((time.perf_counter() - start) * 1000)
        result: Dict[str, Any] = {
            "status": status,
            "held": held,
            "expired": expired,
            "latency_ms": latency_ms,
        }
        if error:
            result["error"] = error
        return result

    async def get_health_status(self) -> Dict[str, Any]:
        """Aggregate health report suitable for Kubernetes probes."""
        db_result, locks_result = await asyncio.gather(
            self.check_database(),
            self.check_job_locks(),
        )

        # Expired rows only mean nobody has swept yet; they never block acquirers.
        if db_result.get("status") != "ok":
            overall_status = "unhealthy"
        elif locks_result.get("status") != "ok" or locks_result.get("expired", 0) > 0:
            overall_status = "degraded"
        else:
            overall_status = "healthy"

        now = datetime.now(timezone.utc)
        return {
            "status": overall_status,
            "timestamp": _isoformat(now),
            "instance_id": self.service.instance_id,
            "checks": {
                "database": db_result,
                "job_locks": locks_result,
            },
            "active_heartbeats": len(self.service.heartbeats),
            "uptime_seconds": int((now - self.start_time).total_seconds()),
        }


__all__ = ["HealthChecker"]
