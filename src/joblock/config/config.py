"""Configuration management."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

from joblock.lock.models import LockOptions

_ENV_FIELDS: Dict[str, str] = {
    "db_url": "JOBLOCK_DB_URL",
    "lock_timeout_seconds": "JOBLOCK_TIMEOUT_SECONDS",
    "heartbeat_interval_seconds": "JOBLOCK_HEARTBEAT_INTERVAL_SECONDS",
    "extend_on_heartbeat": "JOBLOCK_EXTEND_ON_HEARTBEAT",
    "log_level": "LOG_LEVEL",
    "log_json": "JOBLOCK_LOG_JSON",
    "api_host": "JOBLOCK_API_HOST",
    "api_port": "JOBLOCK_API_PORT",
    "db_echo": "JOBLOCK_DB_ECHO",
}


class LockConfig(BaseModel):
    """Lock service configuration."""

    db_url: str = Field(
        "postgresql+asyncpg://joblock:joblock@db/joblock",
        description="SQLAlchemy async URL of the shared lock store",
    )
    instance_id: Optional[str] = Field(
        None,
        description="Identifier of this pod; generated when unset",
    )
    lock_timeout_seconds: float = Field(
        300.0,
        gt=0,
        description="Default lease duration",
    )
    heartbeat_interval_seconds: float = Field(
        30.0,
        gt=0,
        description="Default heartbeat cadence",
    )
    extend_on_heartbeat: bool = Field(
        False,
        description="Move the lease deadline forward on every heartbeat",
    )
    log_level: str = Field("INFO", description="Root log level")
    log_json: bool = Field(True, description="Render logs as JSON")
    api_host: str = Field("127.0.0.1", description="Status API bind host")
    api_port: int = Field(8000, ge=1, le=65535, description="Status API port")
    db_echo: bool = Field(False, description="Echo SQL statements")

    @classmethod
    def from_env(cls) -> "LockConfig":
        values: Dict[str, Any] = {}
        for field_name, env_name in _ENV_FIELDS.items():
            raw = os.getenv(env_name)
            if raw is not None and raw != "":
                values[field_name] = raw

        # POD_NAME is set by the Kubernetes downward API.
        instance_id = os.getenv("JOBLOCK_INSTANCE_ID") or os.getenv("POD_NAME")
        if instance_id:
            values["instance_id"] = instance_id

        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "LockConfig":
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        section = data.get("joblock", data)
        return cls(**section)

    def to_lock_options(self) -> LockOptions:
        return LockOptions(
            timeout_seconds=self.lock_timeout_seconds,
            heartbeat_interval_seconds=self.heartbeat_interval_seconds,
            extend_on_heartbeat=self.extend_on_heartbeat,
        )


__all__ = ["LockConfig"]
