"""Fuzzy-searchable index over the Steam app list.

The downloaded list is kept on disk as ``{"timeSinceUpdate": <ms>, "data": [...]}``
and reused while younger than the configured TTL.
"""

from __future__ import annotations

import time
from typing import Callable, Iterable, List, Optional

import structlog
from rapidfuzz import fuzz, process, utils

from src.exceptions import PersistenceError
from src.storage.json_store import JsonRecordStore

from .client import SteamClient
from .models import AppSummary

logger = structlog.get_logger()


class AppIndex:
    """In-memory app list with fuzzy name search."""

    def __init__(
        self,
        client: SteamClient,
        store: JsonRecordStore,
        *,
        ttl_seconds: float = 86400.0,
        score_cutoff: float = 70.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.store = store
        self.ttl_seconds = float(ttl_seconds)
        self.score_cutoff = float(score_cutoff)
        self._clock = clock
        self._apps: List[AppSummary] = []
        self._names: List[str] = []
        self._loaded = False

    @property
    def size(self) -> int:
        return len(self._apps)

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self) -> int:
        """Load from disk when fresh, otherwise download and persist.

        Returns the number of apps now indexed.
        """
        apps = self._load_fresh_from_disk()
        if apps is not None:
            logger.info("Steam app list loaded from disk", count=len(apps))
        else:
            apps = await self.client.fetch_app_list()
            self._persist(apps)

        self._apps.clear()
        self._names.clear()
        self.add_items(apps)
        self._loaded = True
        return self.size

    def add_items(self, items: Iterable[AppSummary]) -> None:
        for app in items:
            self._apps.append(app)
            self._names.append(app.name)

    def search(self, query: str, limit: int) -> List[AppSummary]:
        """Best matches for ``query``, highest score first."""
        if not query or not query.strip() or limit <= 0 or not self._apps:
            return []

        matches = process.extract(
            query,
            self._names,
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            limit=limit,
            score_cutoff=self.score_cutoff,
        )
        return [self._apps[index] for _, _, index in matches]

    def _load_fresh_from_disk(self) -> Optional[List[AppSummary]]:
        try:
            payload = self.store.load_all()
        except PersistenceError as e:
            logger.warning("Cannot read app list cache", error=str(e))
            return None
        if not payload:
            return None

        try:
            updated_at_ms = float(payload.get("timeSinceUpdate", 0))
        except (TypeError, ValueError):
            return None
        age_seconds = self._clock() - updated_at_ms / 1000.0
        if age_seconds >= self.ttl_seconds:
            logger.info("Steam app list cache expired", age_seconds=int(age_seconds))
            return None

        raw_apps = payload.get("data")
        if not isinstance(raw_apps, list):
            return None
        return [
            app
            for app in (
                AppSummary.from_dict(raw) for raw in raw_apps if isinstance(raw, dict)
            )
            if app
        ]

    def _persist(self, apps: List[AppSummary]) -> None:
        try:
            self.store.save_all(
                {
                    "timeSinceUpdate": int(self._clock() * 1000),
                    "data": [app.to_dict() for app in apps],
                }
            )
        except PersistenceError as e:
            logger.warning("Cannot persist app list", error=str(e))
