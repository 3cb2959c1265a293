"""Host-facing addon operations.

Handlers keep the Steam HTTP glue thin: they call the client or the update
service and reshape results into the payloads the host expects.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Dict, List, Optional

import structlog

from src.config.settings import Settings
from src.exceptions import AppNotFoundError
from src.steam.app_index import AppIndex
from src.steam.client import SteamClient
from src.steam.models import CatalogSection, GameData, GameDetails, LibraryEntry
from src.updates.service import UpdateService
from src.utils.constants import MAX_STEAM_SEARCH_LIMIT, MIN_STEAM_SEARCH_LIMIT

logger = structlog.get_logger()

# (key, name, description, store tag id)
CATALOG_SECTIONS = (
    ("top-sellers", "Top Sellers", "The best selling games on Steam", None),
    ("roguelike", "Roguelike", "Top Roguelike games on Steam", "1716"),
    ("jrpg", "JRPG", "Top JRPG games on Steam", "4434"),
)


def stagger_delay(
    position: int, step: float, cap: float, jitter: float = 0.25
) -> float:
    """Delay for the ``position``-th lookup of one batch, bounded by ``cap``."""
    if step <= 0:
        return 0.0
    base = min(position * step, cap)
    if base <= 0:
        return 0.0
    return min(cap, base * (1 + random.uniform(-jitter, jitter)))


class AddonHandlers:
    """Implement the host events on top of the Steam client and services."""

    def __init__(
        self,
        settings: Settings,
        client: SteamClient,
        app_index: AppIndex,
        update_service: UpdateService,
    ) -> None:
        self.settings = settings
        self.client = client
        self.app_index = app_index
        self.update_service = update_service
        self.search_limit = settings.steam_search_limit

    def configure(self) -> List[Dict[str, Any]]:
        """Describe the user-facing options."""
        return [
            {
                "type": "number",
                "name": "steam-limit",
                "displayName": "Steam Search Limit",
                "description": (
                    "The amount of steam apps that can be searched for at once. "
                    "More results means more time to search."
                ),
                "min": MIN_STEAM_SEARCH_LIMIT,
                "max": MAX_STEAM_SEARCH_LIMIT,
                "defaultValue": self.settings.steam_search_limit,
                "inputType": "range",
            }
        ]

    def apply_config(self, values: Dict[str, Any]) -> None:
        """Apply option values sent by the host."""
        raw = values.get("steam-limit")
        if raw is None:
            return
        try:
            limit = int(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid steam-limit", value=raw)
            return
        self.search_limit = max(
            MIN_STEAM_SEARCH_LIMIT, min(MAX_STEAM_SEARCH_LIMIT, limit)
        )
        logger.info("Search limit updated", steam_limit=self.search_limit)

    async def connect(self) -> List[str]:
        """Warm the app index; returns the task log lines for the host."""
        log_lines = ["Downloading Steam apps"]
        count = await self.app_index.load()
        log_lines.append("Steam apps downloaded")
        logger.info("Connected", indexed_apps=count)
        return log_lines

    async def library_search(self, query: str) -> List[Dict[str, Any]]:
        """Fuzzy-match the app list and keep the hits that are real games."""
        candidates = self.app_index.search(query, self.search_limit)
        if not candidates:
            return []

        lookups = [
            self._staggered_details(candidate.appid, position)
            for position, candidate in enumerate(candidates)
        ]
        outcomes = await asyncio.gather(*lookups, return_exceptions=True)

        seen: set[int] = set()
        entries: List[Dict[str, Any]] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.warning("Search lookup failed", error=str(outcome))
                continue
            if outcome is None or outcome.steam_appid in seen:
                continue
            seen.add(outcome.steam_appid)
            entries.append(LibraryEntry.from_game(outcome).to_payload())

        logger.info(
            "Library search finished",
            query=query,
            candidates=len(candidates),
            results=len(entries),
        )
        return entries

    async def game_details(self, app_id: int) -> Dict[str, Any]:
        game = await self.client.fetch_app_details(app_id)
        if game is None:
            raise AppNotFoundError("Game not found", app_id=app_id)
        return GameDetails.from_game(game).to_payload()

    async def catalog(self) -> Dict[str, Any]:
        """Fetch the curated sections; failed sections are left out."""
        outcomes = await asyncio.gather(
            *(self._catalog_section(*entry) for entry in CATALOG_SECTIONS),
            return_exceptions=True,
        )
        sections: Dict[str, Any] = {}
        for entry, outcome in zip(CATALOG_SECTIONS, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Catalog section failed", section=entry[0], error=str(outcome)
                )
                continue
            sections[outcome.key] = outcome.to_payload()
        return sections

    async def check_for_updates(
        self, app_id: int, current_version: str
    ) -> Dict[str, Any]:
        result = await self.update_service.check_for_update(app_id, current_version)
        return result.as_dict()

    async def _staggered_details(self, app_id: int, position: int) -> Optional[GameData]:
        delay = stagger_delay(
            position,
            self.settings.search_stagger_seconds,
            self.settings.search_stagger_cap_seconds,
        )
        if delay > 0:
            await asyncio.sleep(delay)
        return await self.client.fetch_app_details(app_id)

    async def _catalog_section(
        self, key: str, name: str, description: str, tags: Optional[str]
    ) -> CatalogSection:
        listings = await self.client.search_results(tags=tags)
        return CatalogSection(
            key=key, name=name, description=description, listings=listings
        )
