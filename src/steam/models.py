"""Steam records and the payload shapes the host expects."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.utils.constants import (
    STEAM_CDN_URL,
    STEAM_LIBRARY_CDN_URL,
    STEAM_SHARED_CDN_URL,
    STOREFRONT,
)


@dataclass(frozen=True)
class AppBuildRecord:
    """Latest public branch build of an app as reported by the metadata API."""

    app_id: int
    build_id: Optional[str] = None
    public_only: bool = False


@dataclass(frozen=True)
class AppSummary:
    """One row of the Steam app list."""

    appid: int
    name: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["AppSummary"]:
        try:
            appid = int(data["appid"])
        except (KeyError, TypeError, ValueError):
            return None
        name = str(data.get("name") or "").strip()
        if not name:
            return None
        return cls(appid=appid, name=name)

    def to_dict(self) -> Dict[str, Any]:
        return {"appid": self.appid, "name": self.name}


@dataclass
class GameData:
    """Subset of the store ``appdetails`` payload used by the addon."""

    steam_appid: int
    name: str
    type: str = "game"
    short_description: str = ""
    detailed_description: str = ""
    developers: List[str] = field(default_factory=list)
    publishers: List[str] = field(default_factory=list)
    release_date: str = ""
    header_image: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "GameData":
        release = data.get("release_date") or {}
        return cls(
            steam_appid=int(data["steam_appid"]),
            name=str(data.get("name") or ""),
            type=str(data.get("type") or ""),
            short_description=str(data.get("short_description") or ""),
            detailed_description=str(data.get("detailed_description") or ""),
            developers=list(data.get("developers") or []),
            publishers=list(data.get("publishers") or []),
            release_date=str(release.get("date") or "") if isinstance(release, dict) else "",
            header_image=data.get("header_image"),
        )


@dataclass(frozen=True)
class LibraryEntry:
    """Basic library info shown in search results and catalog listings."""

    app_id: int
    name: str
    capsule_image: str
    storefront: str = STOREFRONT

    @classmethod
    def from_game(cls, game: GameData) -> "LibraryEntry":
        return cls(
            app_id=game.steam_appid,
            name=game.name,
            capsule_image=f"{STEAM_CDN_URL}/steam/apps/{game.steam_appid}/header.jpg",
        )

    @classmethod
    def for_catalog(cls, app_id: int, name: str) -> "LibraryEntry":
        return cls(
            app_id=app_id,
            name=name,
            capsule_image=(
                f"{STEAM_CDN_URL}/steam/apps/{app_id}/library_600x900_2x.jpg"
            ),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "appID": self.app_id,
            "name": self.name,
            "capsuleImage": self.capsule_image,
            "storefront": self.storefront,
        }


@dataclass
class GameDetails:
    """Detailed game record returned for ``game-details``."""

    app_id: int
    name: str
    capsule_image: str
    header_image: str
    cover_image: str
    publishers: List[str]
    developers: List[str]
    release_date: str
    basic_description: str
    description: str

    @classmethod
    def from_game(cls, game: GameData) -> "GameDetails":
        app_id = game.steam_appid
        return cls(
            app_id=app_id,
            name=game.name,
            capsule_image=(
                f"{STEAM_LIBRARY_CDN_URL}/steam/apps/{app_id}/library_600x900_2x.jpg"
            ),
            header_image=(
                f"{STEAM_SHARED_CDN_URL}/store_item_assets/steam/apps/"
                f"{app_id}/library_hero.jpg"
            ),
            cover_image=f"{STEAM_LIBRARY_CDN_URL}/steam/apps/{app_id}/library_hero.jpg",
            publishers=list(game.publishers),
            developers=list(game.developers),
            release_date=game.release_date,
            basic_description=game.short_description,
            description=game.detailed_description,
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "appID": self.app_id,
            "name": self.name,
            "capsuleImage": self.capsule_image,
            "headerImage": self.header_image,
            "coverImage": self.cover_image,
            "publishers": self.publishers,
            "developers": self.developers,
            "releaseDate": self.release_date,
            "basicDescription": self.basic_description,
            "description": self.description,
        }


@dataclass
class CatalogSection:
    """One curated catalog row (e.g. top sellers)."""

    key: str
    name: str
    description: str
    listings: List[LibraryEntry] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "listings": [entry.to_payload() for entry in self.listings],
        }
