import asyncio
import json
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from joblock.cli.main import EXIT_LOCK_HELD, cli
from joblock.db.connector import LockDbConnector
from joblock.db.store import LockStore
from joblock.lock.models import LockOptions
from joblock.lock.service import DistributedLockService

pytestmark = pytest.mark.integration


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'cli_locks.db'}"


@pytest.fixture
def invoke(db_url: str, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("JOBLOCK_DB_URL", raising=False)
    runner = CliRunner()

    def _invoke(*args: str, instance_id: str = "pod-cli"):
        return runner.invoke(
            cli,
            [
                "--db-url",
                db_url,
                "--instance-id",
                instance_id,
                "--log-level",
                "ERROR",
                *args,
            ],
        )

    return _invoke


def _hold_lock(db_url: str, job_name: str, timeout_seconds: float = 600) -> str:
    """Take a lease from another "pod" and leave the row behind."""

    async def _main() -> str:
        db = LockDbConnector(db_url)
        service = DistributedLockService(LockStore(db), "pod-other")
        try:
            lock = await service.acquire_lock(
                job_name, LockOptions(timeout_seconds=timeout_seconds)
            )
            assert lock is not None
            return lock.lock_id
        finally:
            service.cleanup()
            await db.dispose()

    return asyncio.run(_main())


def test_init_db(invoke) -> None:
    result = invoke("init-db")

    assert result.exit_code == 0, result.output
    assert "job_locks table ready" in result.output


def test_status_unlocked(invoke) -> None:
    invoke("init-db")

    result = invoke("status", "nightly-sync")

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"job_name": "nightly-sync", "is_locked": False}


def test_status_and_list_show_holder(invoke, db_url: str) -> None:
    invoke("init-db")
    lock_id = _hold_lock(db_url, "nightly-sync")

    status = json.loads(invoke("status", "nightly-sync").output)
    assert status["is_locked"] is True
    assert status["locked_by"] == "pod-other"
    assert status["lock_id"] == lock_id

    listing = json.loads(invoke("list").output)
    assert [item["job_name"] for item in listing] == ["nightly-sync"]


def test_run_executes_command_and_releases(invoke) -> None:
    invoke("init-db")

    result = invoke(
        "run", "nightly-sync", "--", sys.executable, "-c", "import sys; sys.exit(3)"
    )

    assert result.exit_code == 3, result.output
    status = json.loads(invoke("status", "nightly-sync").output)
    assert status["is_locked"] is False


def test_run_skips_when_lock_held(invoke, db_url: str, tmp_path: Path) -> None:
    invoke("init-db")
    _hold_lock(db_url, "nightly-sync")
    marker = tmp_path / "ran"

    result = invoke(
        "run",
        "nightly-sync",
        "--",
        sys.executable,
        "-c",
        f"open({str(marker)!r}, 'w').close()",
    )

    assert result.exit_code == EXIT_LOCK_HELD
    assert not marker.exists()


def test_run_rejects_bad_timeout(invoke) -> None:
    result = invoke("run", "nightly-sync", "--timeout", "-1", "--", "true")

    assert result.exit_code == 2


def test_sweep(invoke, db_url: str) -> None:
    invoke("init-db")
    _hold_lock(db_url, "job-2", timeout_seconds=600)
    # Already expired by the time the sweep runs.
    _hold_lock(db_url, "job-1", timeout_seconds=0.001)

    result = invoke("sweep")

    assert result.exit_code == 0, result.output
    assert "removed 1 expired lock(s)" in result.output
    listing = json.loads(invoke("list").output)
    assert [item["job_name"] for item in listing] == ["job-2"]
