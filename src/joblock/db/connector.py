"""
Async SQLAlchemy connector and the job lock model.
"""
import os
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base declarative class."""


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return `value` as an aware UTC datetime (SQLite hands back naive values)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class JobLock(Base):
    """
    Lease on a job name. At most one row exists per job name.
    """

    __tablename__ = "job_locks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    job_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    locked_by: Mapped[str] = mapped_column(String(255), nullable=False)
    locked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    heartbeat_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_job_locks_expires_at", "expires_at"),)

    def is_expired(self, now: datetime) -> bool:
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at < now

    def __repr__(self) -> str:
        return (
            f"<JobLock(job_name={self.job_name!r}, locked_by={self.locked_by!r}, "
            f"expires_at={self.expires_at!r})>"
        )


class LockDbConnector:
    """
    Async SQLAlchemy connector for the shared lock store.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        echo: bool = False,
        engine: Optional[AsyncEngine] = None,
    ):
        if engine is not None:
            self.engine: AsyncEngine = engine
            self.db_url = engine.url.render_as_string(hide_password=True)
        else:
            self.db_url = db_url or os.getenv("JOBLOCK_DB_URL")
            if not self.db_url:
                raise RuntimeError("JOBLOCK_DB_URL env variable is required")
            self.engine = create_async_engine(self.db_url, echo=echo, pool_pre_ping=True)

        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def init_models(self) -> None:
        """Create tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


__all__ = [
    "Base",
    "JobLock",
    "LockDbConnector",
    "as_utc",
]
