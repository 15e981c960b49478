"""FastAPI status endpoints for job locks."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from joblock.config.config import LockConfig
from joblock.lock.models import LockInfo
from joblock.lock.service import DistributedLockService
from joblock.monitoring.health import HealthChecker
from joblock.monitoring.metrics import CONTENT_TYPE_LATEST, generate_latest
from joblock.utils.logging import get_logger

logger = get_logger(__name__)


class LockStatus(BaseModel):
    job_name: str
    is_locked: bool
    lock_id: Optional[str] = None
    locked_by: Optional[str] = None
    locked_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    heartbeat_at: Optional[datetime] = None

    @classmethod
    def from_info(cls, job_name: str, info: LockInfo) -> "LockStatus":
        return cls(
            job_name=job_name,
            is_locked=info.is_locked,
            lock_id=info.lock_id,
            locked_by=info.locked_by,
            locked_at=info.locked_at,
            expires_at=info.expires_at,
            heartbeat_at=info.heartbeat_at,
        )


def create_app(
    service: Optional[DistributedLockService] = None,
    config: Optional[LockConfig] = None,
) -> FastAPI:
    """
    Build the status app.

    Without an explicit service one is built from `config` (or the
    environment) on startup and disposed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = service is None
        lock_service = service or DistributedLockService.from_config(
            config or LockConfig.from_env()
        )
        app.state.lock_service = lock_service
        app.state.health = HealthChecker(lock_service)
        logger.info("status_api_started", instance_id=lock_service.instance_id)
        try:
            yield
        finally:
            if owned:
                lock_service.cleanup()
                await lock_service.store.db.dispose()
            logger.info("status_api_stopped")

    app = FastAPI(title="joblock status API", version="0.1.0", lifespan=lifespan)

    @app.get("/health/live")
    async def live() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        report = await request.app.state.health.get_health_status()
        code = 503 if report["status"] == "unhealthy" else 200
        return JSONResponse(report, status_code=code)

    @app.get(
        "/locks",
        response_model=List[LockStatus],
        response_model_exclude_none=True,
    )
    async def list_locks(request: Request) -> List[LockStatus]:
        lock_service: DistributedLockService = request.app.state.lock_service
        infos = await lock_service.list_active_locks()
        return [LockStatus.from_info(info.job_name or "", info) for info in infos]

    @app.get(
        "/locks/{job_name}",
        response_model=LockStatus,
        response_model_exclude_none=True,
    )
    async def lock_status(job_name: str, request: Request) -> LockStatus:
        lock_service: DistributedLockService = request.app.state.lock_service
        info = await lock_service.get_lock_info(job_name)
        return LockStatus.from_info(job_name, info)

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


__all__ = ["create_app", "LockStatus"]
