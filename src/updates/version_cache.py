"""Durable per-app version cache with a fixed TTL."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

from src.exceptions import PersistenceError
from src.storage.json_store import JsonRecordStore

logger = structlog.get_logger()

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class VersionCacheEntry:
    version: str
    recorded_at: float

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "recordedAt": self.recorded_at}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["VersionCacheEntry"]:
        if not isinstance(data, dict):
            return None
        version = data.get("version")
        recorded_at = data.get("recordedAt")
        if not isinstance(version, str) or not version:
            return None
        try:
            return cls(version=version, recorded_at=float(recorded_at))
        except (TypeError, ValueError):
            return None


class VersionCache:
    """App id -> last fetched version, persisted as one JSON object.

    Reads and writes for a given app id only happen from that app's update
    processor, so the whole-file load/save never races for the same key.
    Persistence failures are logged and degrade to a miss.
    """

    def __init__(
        self,
        store: JsonRecordStore,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock

    def get(self, app_id: int) -> Optional[VersionCacheEntry]:
        """Return the entry while it is younger than the TTL."""
        key = str(app_id)
        try:
            records = self.store.load_all()
        except PersistenceError as e:
            logger.warning("Version cache read failed", app_id=app_id, error=str(e))
            return None

        if key not in records:
            return None

        entry = VersionCacheEntry.from_dict(records[key])
        if entry is not None and self._clock() - entry.recorded_at < self.ttl_seconds:
            return entry

        # Expired or malformed: purge it from the persisted form.
        records.pop(key, None)
        try:
            self.store.save_all(records)
        except PersistenceError as e:
            logger.warning("Version cache purge failed", app_id=app_id, error=str(e))
        logger.debug("Version cache entry expired", app_id=app_id)
        return None

    def put(self, app_id: int, version: str) -> VersionCacheEntry:
        """Record ``version`` for ``app_id`` now and persist before returning."""
        entry = VersionCacheEntry(version=version, recorded_at=self._clock())
        try:
            records = self.store.load_all()
            records[str(app_id)] = entry.to_dict()
            self.store.save_all(records)
        except PersistenceError as e:
            logger.warning("Version cache write failed", app_id=app_id, error=str(e))
        return entry
