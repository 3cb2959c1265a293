"""Tests for the coalescing update service."""

import asyncio
import json
import time
from collections import defaultdict
from contextlib import suppress

import pytest

from src.exceptions import AppNotFoundError, PersistenceError, TransientFetchError
from src.steam.models import AppBuildRecord
from src.storage.json_store import JsonRecordStore
from src.updates.legacy_versions import LegacyVersionResolver
from src.updates.metadata import AppMetadataSource
from src.updates.rate_limiter import AppRateLimiter
from src.updates.service import UpdateCheckResult, UpdateService
from src.updates.version_cache import VersionCache

COOLDOWN = 0.05


class _FakeMetadataSource(AppMetadataSource):
    """Scripted upstream that records call times and concurrency."""

    def __init__(self, builds, delay: float = 0.0):
        # app id -> build id, exception, or list of those consumed per call
        self.builds = builds
        self.delay = delay
        self.calls: list[tuple[int, float]] = []
        self._in_flight: dict[int, int] = defaultdict(int)
        self.max_in_flight: dict[int, int] = defaultdict(int)

    def call_count(self, app_id: int) -> int:
        return sum(1 for called_id, _ in self.calls if called_id == app_id)

    def call_times(self, app_id: int) -> list[float]:
        return [at for called_id, at in self.calls if called_id == app_id]

    async def fetch_app_metadata(self, app_id: int) -> AppBuildRecord:
        self.calls.append((app_id, time.monotonic()))
        self._in_flight[app_id] += 1
        self.max_in_flight[app_id] = max(
            self.max_in_flight[app_id], self._in_flight[app_id]
        )
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if app_id not in self.builds:
                raise AppNotFoundError(f"App {app_id} not found", app_id=app_id)
            outcome = self.builds[app_id]
            if isinstance(outcome, list):
                outcome = outcome.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return AppBuildRecord(app_id=app_id, build_id=outcome)
        finally:
            self._in_flight[app_id] -= 1


class _BrokenStore:
    """Persistence that always fails, forcing every lookup to miss."""

    def load_all(self):
        raise PersistenceError("read-only medium")

    def save_all(self, records):
        raise PersistenceError("read-only medium")


class _RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await asyncio.sleep(0)


def _make_service(source, cache_store, legacy_resolver=None, sleep=asyncio.sleep):
    return UpdateService(
        source,
        VersionCache(cache_store),
        AppRateLimiter(COOLDOWN),
        legacy_resolver,
        sleep=sleep,
    )


@pytest.mark.asyncio
async def test_cache_miss_fetches_and_caches(tmp_path) -> None:
    """Empty cache: fetch build 57, report available, persist (42, 57)."""
    cache_file = tmp_path / "version-cache.json"
    source = _FakeMetadataSource({42: "57"})
    service = _make_service(source, JsonRecordStore(cache_file))

    result = await service.check_for_update(42, "1.0.0")

    assert result == UpdateCheckResult(version="57", available=True)
    assert source.call_count(42) == 1
    assert json.loads(cache_file.read_text(encoding="utf-8"))["42"]["version"] == "57"


@pytest.mark.asyncio
async def test_repeat_check_is_served_from_cache(tmp_path) -> None:
    """Second check within the TTL should not reach upstream."""
    source = _FakeMetadataSource({42: "57"})
    service = _make_service(source, JsonRecordStore(tmp_path / "cache.json"))

    await service.check_for_update(42, "1.0.0")
    result = await service.check_for_update(42, "57")

    assert result.as_dict() == {"version": "57", "available": False}
    assert source.call_count(42) == 1


@pytest.mark.asyncio
async def test_back_to_back_misses_are_serialized_and_spaced() -> None:
    """Three misses for one app: three calls, spaced by the cooldown, FIFO."""
    source = _FakeMetadataSource({7: ["1", "2", "3"]})
    service = _make_service(source, _BrokenStore())
    resolved: list[str] = []

    futures = [service.submit(7, f"v{i}") for i in range(3)]
    for index, future in enumerate(futures):
        future.add_done_callback(lambda _f, i=index: resolved.append(f"r{i}"))
    results = await asyncio.gather(*futures)

    assert [r.version for r in results] == ["1", "2", "3"]
    assert resolved == ["r0", "r1", "r2"]
    assert source.call_count(7) == 3
    times = source.call_times(7)
    for earlier, later in zip(times, times[1:]):
        assert later - earlier >= COOLDOWN * 0.99


@pytest.mark.asyncio
async def test_unknown_app_is_rejected_and_not_cached(tmp_path) -> None:
    cache_file = tmp_path / "cache.json"
    service = _make_service(_FakeMetadataSource({}), JsonRecordStore(cache_file))

    with pytest.raises(AppNotFoundError):
        await service.check_for_update(99, "5")

    stored = json.loads(cache_file.read_text()) if cache_file.exists() else {}
    assert "99" not in stored


@pytest.mark.asyncio
async def test_resolutions_follow_submission_order(tmp_path) -> None:
    """Requests for one app resolve in the order they were submitted."""
    source = _FakeMetadataSource({3: "10"}, delay=0.01)
    service = _make_service(source, JsonRecordStore(tmp_path / "cache.json"))
    order: list[int] = []

    futures = [service.submit(3, str(version)) for version in (9, 10, 11, 10)]
    for index, future in enumerate(futures):
        future.add_done_callback(lambda _f, i=index: order.append(i))
    results = await asyncio.gather(*futures)

    assert order == [0, 1, 2, 3]
    assert [r.available for r in results] == [True, False, True, False]
    assert {r.version for r in results} == {"10"}


@pytest.mark.asyncio
async def test_at_most_one_fetch_in_flight_per_app() -> None:
    """Concurrent submissions never overlap upstream calls for one app."""
    source = _FakeMetadataSource({1: ["a", "b", "c"], 2: ["x", "y"]}, delay=0.02)
    service = _make_service(source, _BrokenStore())

    await asyncio.gather(
        service.check_for_update(1, "0"),
        service.check_for_update(2, "0"),
        service.check_for_update(1, "0"),
        service.check_for_update(2, "0"),
        service.check_for_update(1, "0"),
    )

    assert source.max_in_flight[1] == 1
    assert source.max_in_flight[2] == 1
    assert source.call_count(1) == 3
    assert source.call_count(2) == 2


@pytest.mark.asyncio
async def test_cache_hits_skip_upstream_and_inter_item_wait(tmp_path) -> None:
    """Valid cache entries are served without fetching or cooling down."""
    cache_store = JsonRecordStore(tmp_path / "cache.json")
    VersionCache(cache_store).put(42, "57")
    source = _FakeMetadataSource({42: "58"})
    sleep = _RecordingSleep()
    service = _make_service(source, cache_store, sleep=sleep)

    results = await asyncio.gather(
        *(service.check_for_update(42, v) for v in ("57", "56", "57"))
    )

    assert [r.available for r in results] == [False, True, False]
    assert {r.version for r in results} == {"57"}
    assert source.call_count(42) == 0
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_inter_item_wait_only_after_miss_with_more_queued(tmp_path) -> None:
    """A miss followed by queued work waits one cooldown; the tail does not."""
    source = _FakeMetadataSource({42: "57"})
    sleep = _RecordingSleep()
    service = _make_service(source, JsonRecordStore(tmp_path / "c.json"), sleep=sleep)

    await asyncio.gather(
        service.check_for_update(42, "1"), service.check_for_update(42, "2")
    )

    assert sleep.calls == [COOLDOWN]
    assert source.call_count(42) == 1


@pytest.mark.asyncio
async def test_failure_is_local_to_one_request() -> None:
    """A failed fetch rejects only its own request; siblings still resolve."""
    source = _FakeMetadataSource({5: [TransientFetchError("timeout"), "8"]})
    service = _make_service(source, _BrokenStore())

    first, second = await asyncio.gather(
        service.check_for_update(5, "7"),
        service.check_for_update(5, "7"),
        return_exceptions=True,
    )

    assert isinstance(first, TransientFetchError)
    assert second == UpdateCheckResult(version="8", available=True)


@pytest.mark.asyncio
async def test_processor_removes_itself_when_drained(tmp_path) -> None:
    """Drained queues leave the registry; a later submit starts fresh."""
    source = _FakeMetadataSource({4: "1"}, delay=0.01)
    service = _make_service(source, JsonRecordStore(tmp_path / "cache.json"))

    future = service.submit(4, "0")
    assert service.is_processing(4) is True
    await future
    await asyncio.sleep(0)

    assert service.is_processing(4) is False
    assert service.active_app_ids() == []

    assert (await service.check_for_update(4, "1")).available is False


@pytest.mark.asyncio
async def test_placeholder_version_uses_legacy_snapshot(tmp_path) -> None:
    """Placeholder installs compare against the one-time snapshot."""
    source = _FakeMetadataSource({42: ["57", "58"]})
    legacy = LegacyVersionResolver(JsonRecordStore(tmp_path / "legacy.json"), source)
    service = _make_service(
        source, JsonRecordStore(tmp_path / "cache.json"), legacy_resolver=legacy
    )

    first = await service.check_for_update(42, "1.0.0")
    second = await service.check_for_update(42, "1.0")

    assert first == UpdateCheckResult(version="57", available=False)
    assert second == UpdateCheckResult(version="57", available=False)
    assert source.call_count(42) == 1
    assert legacy.lookup(42) == "57"


@pytest.mark.asyncio
async def test_placeholder_snapshot_reports_later_builds(tmp_path) -> None:
    """Once the cache expires, a newer upstream build is reported available."""
    source = _FakeMetadataSource({42: ["57", "60"]})
    legacy = LegacyVersionResolver(JsonRecordStore(tmp_path / "legacy.json"), source)
    cache_store = JsonRecordStore(tmp_path / "cache.json")
    service = _make_service(source, cache_store, legacy_resolver=legacy)

    await service.check_for_update(42, "1.0.0")
    cache_store.save_all({})
    result = await service.check_for_update(42, "1.0.0")

    assert result == UpdateCheckResult(version="60", available=True)


@pytest.mark.asyncio
async def test_close_cancels_unserved_requests(tmp_path) -> None:
    source = _FakeMetadataSource({6: "1"}, delay=1.0)
    service = _make_service(source, JsonRecordStore(tmp_path / "cache.json"))

    first = service.submit(6, "0")
    second = service.submit(6, "0")
    await asyncio.sleep(0.01)
    await service.close()

    assert first.cancelled() is True
    assert second.cancelled() is True
    assert service.active_app_ids() == []
    for future in (first, second):
        with suppress(asyncio.CancelledError):
            await future


class _Clock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_expired_cache_entry_triggers_fresh_fetch(tmp_path) -> None:
    """A check after the TTL elapses goes upstream again and sees the new build."""
    clock = _Clock()
    cache = VersionCache(JsonRecordStore(tmp_path / "cache.json"), clock=clock)
    source = _FakeMetadataSource({42: ["57", "58"]})
    service = UpdateService(source, cache, AppRateLimiter(COOLDOWN))

    first = await service.check_for_update(42, "57")
    clock.now += cache.ttl_seconds - 1
    second = await service.check_for_update(42, "57")
    clock.now += 1
    third = await service.check_for_update(42, "57")

    assert first == UpdateCheckResult(version="57", available=False)
    assert second == UpdateCheckResult(version="57", available=False)
    assert third == UpdateCheckResult(version="58", available=True)
    assert source.call_count(42) == 2
    assert cache.get(42).version == "58"


@pytest.mark.asyncio
async def test_undecodable_cache_file_does_not_break_checks(tmp_path) -> None:
    cache_file = tmp_path / "version-cache.json"
    cache_file.write_bytes(b"\xff\xfe{garbage")
    source = _FakeMetadataSource({42: "57"})
    service = _make_service(source, JsonRecordStore(cache_file))

    result = await service.check_for_update(42, "56")

    assert result == UpdateCheckResult(version="57", available=True)
    assert json.loads(cache_file.read_text(encoding="utf-8"))["42"]["version"] == "57"
