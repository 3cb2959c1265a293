"""Steam store integration."""

from .models import (
    AppBuildRecord,
    AppSummary,
    CatalogSection,
    GameData,
    GameDetails,
    LibraryEntry,
)

__all__ = [
    "AppBuildRecord",
    "AppSummary",
    "CatalogSection",
    "GameData",
    "GameDetails",
    "LibraryEntry",
]
