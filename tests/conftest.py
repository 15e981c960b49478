import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator, Callable, List

import pytest
import pytest_asyncio

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from joblock.db.connector import LockDbConnector  # noqa: E402
from joblock.db.store import LockStore  # noqa: E402
from joblock.lock.service import DistributedLockService  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line(
        "markers",
        "integration: tests that exercise several components against a real DB file",
    )
    config.addinivalue_line("markers", "slow: tests that wait on real time")


class FakeClock:
    """Settable UTC clock shared by every simulated pod in a test."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 3, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 0.0, milliseconds: float = 0.0) -> datetime:
        self.current += timedelta(seconds=seconds, milliseconds=milliseconds)
        return self.current


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'job_locks.db'}"


@pytest_asyncio.fixture
async def lock_db(db_url: str) -> AsyncIterator[LockDbConnector]:
    """Connector backed by a temporary SQLite file (one connection per session)."""
    connector = LockDbConnector(db_url)
    await connector.init_models()
    try:
        yield connector
    finally:
        await connector.dispose()


@pytest.fixture
def lock_store(lock_db: LockDbConnector) -> LockStore:
    return LockStore(lock_db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def make_service(
    lock_store: LockStore, clock: FakeClock
) -> AsyncIterator[Callable[..., DistributedLockService]]:
    """Factory for services that play separate pods against one store."""
    services: List[DistributedLockService] = []

    def _make(instance_id: str | None = None, **kwargs) -> DistributedLockService:
        kwargs.setdefault("clock", clock)
        service = DistributedLockService(lock_store, instance_id, **kwargs)
        services.append(service)
        return service

    yield _make

    for service in services:
        service.cleanup()
    # Let cancelled heartbeat tasks unwind before the loop closes.
    await asyncio.sleep(0)
