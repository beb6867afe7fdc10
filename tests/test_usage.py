import asyncio
import json

from regional_weather.weather.usage import UsageTracker

TODAY = "2026-10-18"


def acquire(tracker, times=1):
    async def run():
        return [await tracker.acquire() for _ in range(times)]

    return asyncio.run(run())


def test_missing_file_starts_fresh(tmp_path):
    tracker = UsageTracker(tmp_path / "usage.json", daily_limit=10, force=False, today=TODAY)
    tracker.load()

    status = tracker.check()
    assert status.today_calls == 0
    assert status.remaining == 10
    assert status.can_call


def test_calls_persist_across_runs(tmp_path):
    path = tmp_path / "nested" / "usage.json"
    tracker = UsageTracker(path, daily_limit=10, force=False, today=TODAY)
    tracker.load()
    acquire(tracker, 3)
    tracker.save()

    reloaded = UsageTracker(path, daily_limit=10, force=False, today=TODAY)
    reloaded.load()

    assert reloaded.today_calls == 3
    assert reloaded.record.total_calls == 3
    assert json.loads(path.read_text())["daily_calls"] == {TODAY: 3}


def test_new_day_resets_counter(tmp_path):
    path = tmp_path / "usage.json"
    path.write_text(json.dumps({
        "daily_calls": {"2026-10-17": 7},
        "total_calls": 40,
        "last_reset": "2026-10-17",
    }))

    tracker = UsageTracker(path, daily_limit=10, force=False, today=TODAY)
    tracker.load()

    assert tracker.today_calls == 0
    assert tracker.record.total_calls == 40
    assert tracker.record.daily_calls == {}
    assert tracker.record.last_reset == TODAY


def test_limit_is_enforced_unless_forced(tmp_path):
    tracker = UsageTracker(tmp_path / "usage.json", daily_limit=2, force=False, today=TODAY)

    assert acquire(tracker, 3) == [True, True, False]
    assert tracker.today_calls == 2
    assert tracker.check().limit_reached

    tracker.force = True
    assert acquire(tracker) == [True]
    assert tracker.today_calls == 3


def test_concurrent_acquires_are_not_lost(tmp_path):
    tracker = UsageTracker(tmp_path / "usage.json", daily_limit=5, force=False, today=TODAY)

    async def run():
        return await asyncio.gather(*(tracker.acquire() for _ in range(8)))

    results = asyncio.run(run())

    assert results.count(True) == 5
    assert tracker.today_calls == 5


def test_overlapping_runs_on_one_file_add_up(tmp_path):
    path = tmp_path / "usage.json"
    first = UsageTracker(path, daily_limit=100, force=False, today=TODAY)
    second = UsageTracker(path, daily_limit=100, force=False, today=TODAY)
    first.load()
    second.load()

    async def run(tracker):
        for _ in range(8):
            await tracker.acquire()
            await asyncio.sleep(0)
        tracker.save()

    async def both():
        await asyncio.gather(run(first), run(second))

    asyncio.run(both())

    written = json.loads(path.read_text())
    assert written["daily_calls"] == {TODAY: 16}
    assert written["total_calls"] == 16
    assert first.unsaved_calls == second.unsaved_calls == 0


def test_corrupt_file_starts_fresh(tmp_path):
    path = tmp_path / "usage.json"
    path.write_text("{not json")

    tracker = UsageTracker(path, daily_limit=10, force=False, today=TODAY)
    tracker.load()

    assert tracker.today_calls == 0
