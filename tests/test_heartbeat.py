import asyncio

import pytest

from joblock.lock.heartbeat import HeartbeatRegistry

pytestmark = [pytest.mark.asyncio, pytest.mark.unit]


class BeatRecorder:
    """Heartbeat callable that counts calls and returns scripted results."""

    def __init__(self, *results):
        self.calls = 0
        self._results = list(results)

    async def __call__(self) -> bool:
        self.calls += 1
        if self._results:
            result = self._results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return True


async def _settle(seconds: float = 0.05) -> None:
    await asyncio.sleep(seconds)


async def test_start_schedules_periodic_beats() -> None:
    registry = HeartbeatRegistry()
    beat = BeatRecorder()

    registry.start("lock-1", "nightly-sync", 0.01, beat)
    await _settle()

    assert "lock-1" in registry
    assert len(registry) == 1
    assert beat.calls >= 2
    registry.stop_all()


async def test_first_beat_waits_one_interval() -> None:
    registry = HeartbeatRegistry()
    beat = BeatRecorder()

    registry.start("lock-1", "nightly-sync", 10, beat)
    await _settle()

    assert beat.calls == 0
    registry.stop_all()


async def test_stop_cancels_task() -> None:
    registry = HeartbeatRegistry()
    beat = BeatRecorder()
    registry.start("lock-1", "nightly-sync", 0.01, beat)

    assert registry.stop("lock-1") is True
    calls = beat.calls
    await _settle()

    assert "lock-1" not in registry
    assert beat.calls == calls


async def test_stop_unknown_id_is_noop() -> None:
    registry = HeartbeatRegistry()

    assert registry.stop("lock-missing") is False
    assert registry.stop_all() == 0


async def test_start_replaces_existing_task() -> None:
    registry = HeartbeatRegistry()
    old_beat = BeatRecorder()
    new_beat = BeatRecorder()

    registry.start("lock-1", "nightly-sync", 0.01, old_beat)
    registry.start("lock-1", "nightly-sync", 0.01, new_beat)
    await _settle()

    assert len(registry) == 1
    assert old_beat.calls == 0
    assert new_beat.calls >= 1
    registry.stop_all()


async def test_failure_stops_only_its_own_task() -> None:
    registry = HeartbeatRegistry()
    failing = BeatRecorder(RuntimeError("connection reset"))
    healthy = BeatRecorder()

    registry.start("lock-1", "nightly-sync", 0.01, failing)
    registry.start("lock-2", "hourly-report", 0.01, healthy)
    await _settle()

    assert failing.calls == 1
    assert "lock-1" not in registry
    assert "lock-2" in registry
    assert healthy.calls >= 2
    registry.stop_all()


async def test_missing_row_stops_task() -> None:
    registry = HeartbeatRegistry()
    beat = BeatRecorder(True, False)

    registry.start("lock-1", "nightly-sync", 0.01, beat)
    await _settle()

    assert beat.calls == 2
    assert "lock-1" not in registry


async def test_stop_all_cancels_everything() -> None:
    registry = HeartbeatRegistry()
    beats = [BeatRecorder() for _ in range(3)]
    for index, beat in enumerate(beats):
        registry.start(f"lock-{index}", f"job-{index}", 0.01, beat)

    assert sorted(registry.lock_ids()) == ["lock-0", "lock-1", "lock-2"]
    assert registry.stop_all() == 3
    counts = [beat.calls for beat in beats]
    await _settle()

    assert len(registry) == 0
    assert [beat.calls for beat in beats] == counts
