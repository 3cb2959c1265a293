"""Async HTTP client for the Steam store, Web API and SteamCMD info API."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import httpx
import structlog

from src.config.settings import Settings
from src.exceptions import AppNotFoundError, TransientFetchError
from src.updates.metadata import AppMetadataSource

from .models import AppBuildRecord, AppSummary, GameData, LibraryEntry

logger = structlog.get_logger()

_APP_ID_IN_LOGO_RE = re.compile(r"apps/(\d+)")

# Store search defaults: global top sellers, games only, no free-to-play
_SEARCH_BASE_PARAMS = {
    "filter": "globaltopsellers",
    "ignore_preferences": "1",
    "json": "1",
    "hidef2p": "1",
    "category1": "998",
}


def extract_app_id(logo_url: str) -> Optional[int]:
    """Pull the numeric app id out of a store capsule/logo URL."""
    match = _APP_ID_IN_LOGO_RE.search(logo_url or "")
    if not match:
        return None
    return int(match.group(1))


class SteamClient(AppMetadataSource):
    """Thin wrapper around the Steam HTTP endpoints the addon needs."""

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings
        self._http_client = http_client

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                headers={"User-Agent": self.settings.user_agent},
                limits=httpx.Limits(
                    max_connections=10, max_keepalive_connections=5, keepalive_expiry=30
                ),
                follow_redirects=True,
            )
        return self._http_client

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._get_client().get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def fetch_app_details(self, app_id: int) -> Optional[GameData]:
        """Fetch store details; ``None`` unless the app exists and is a game."""
        url = f"{self.settings.steam_store_url}/api/appdetails"
        try:
            payload = await self._get_json(url, params={"appids": app_id, "cc": "us"})
            entry = payload.get(str(app_id)) or {}
            if not entry.get("success"):
                return None
            data = entry.get("data") or {}
            if data.get("type") != "game":
                return None
            return GameData.from_api(data)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("App details lookup failed", app_id=app_id, error=str(e))
            return None

    async def fetch_app_list(self) -> List[AppSummary]:
        """Download the full Steam app list."""
        url = f"{self.settings.steam_web_api_url}/ISteamApps/GetAppList/v0002/"
        params: Dict[str, Any] = {"format": "json"}
        api_key = self.settings.steam_api_key_str
        if api_key:
            params["key"] = api_key

        try:
            payload = await self._get_json(url, params=params)
            raw_apps = payload["applist"]["apps"]
        except httpx.HTTPError as e:
            raise TransientFetchError(f"App list download failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise TransientFetchError(f"Malformed app list payload: {e}") from e

        apps = [app for app in (AppSummary.from_dict(raw) for raw in raw_apps) if app]
        logger.info("Steam app list downloaded", count=len(apps))
        return apps

    async def search_results(self, tags: Optional[str] = None) -> List[LibraryEntry]:
        """Run a store search (top sellers by default) and map it to entries."""
        url = f"{self.settings.steam_store_url}/search/results/"
        params = dict(_SEARCH_BASE_PARAMS)
        if tags:
            params["tags"] = tags

        try:
            payload = await self._get_json(url, params=params)
            items = payload.get("items") or []
        except httpx.HTTPError as e:
            raise TransientFetchError(f"Store search failed: {e}") from e
        except (ValueError, AttributeError) as e:
            raise TransientFetchError(f"Malformed store search payload: {e}") from e

        entries: List[LibraryEntry] = []
        for item in items:
            app_id = extract_app_id(str(item.get("logo") or ""))
            if app_id is None:
                continue
            entries.append(LibraryEntry.for_catalog(app_id, str(item.get("name") or "")))
        return entries

    async def fetch_app_metadata(self, app_id: int) -> AppBuildRecord:
        """Fetch the public branch build id from the SteamCMD info API."""
        url = f"{self.settings.steamcmd_api_url}/v1/info/{app_id}"
        try:
            response = await self._get_client().get(url)
        except httpx.HTTPError as e:
            raise TransientFetchError(
                f"Metadata request failed for app {app_id}: {e}", app_id=app_id
            ) from e

        if response.status_code == 404:
            raise AppNotFoundError(f"App {app_id} not found", app_id=app_id)
        try:
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TransientFetchError(
                f"Metadata request failed for app {app_id}: {e}", app_id=app_id
            ) from e

        return self._parse_build_record(app_id, payload)

    @staticmethod
    def _parse_build_record(app_id: int, payload: Any) -> AppBuildRecord:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise TransientFetchError(
                f"Malformed metadata payload for app {app_id}", app_id=app_id
            )

        app_data = data.get(str(app_id))
        if not app_data:
            raise AppNotFoundError(f"App {app_id} not found", app_id=app_id)
        if not isinstance(app_data, dict):
            raise TransientFetchError(
                f"Malformed metadata entry for app {app_id}", app_id=app_id
            )

        depots = app_data.get("depots") or {}
        branches = None
        if isinstance(depots, dict):
            branches = depots.get("branches") or {}
        if not isinstance(branches, dict):
            raise TransientFetchError(
                f"Malformed branch data for app {app_id}", app_id=app_id
            )

        public = branches.get("public") or {}
        build_id = public.get("buildid") if isinstance(public, dict) else None
        return AppBuildRecord(
            app_id=app_id,
            build_id=str(build_id) if build_id else None,
            public_only=set(branches) <= {"public"},
        )
