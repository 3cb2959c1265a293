"""One-time version snapshots for apps reporting a placeholder version.

Installs made before update checks existed report ``1.0`` / ``1.0.0``. The
first time such an app is checked, the then-current upstream build is stored
permanently and used as its installed version from then on.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

import structlog

from src.exceptions import PersistenceError, StoreError
from src.steam.models import AppBuildRecord
from src.storage.json_store import JsonRecordStore
from src.utils.constants import PLACEHOLDER_VERSIONS

from .metadata import AppMetadataSource, derive_version

logger = structlog.get_logger()

FetchRecord = Callable[[int], Awaitable[AppBuildRecord]]


def is_placeholder_version(version: Optional[str]) -> bool:
    return (version or "").strip() in PLACEHOLDER_VERSIONS


class LegacyVersionResolver:
    """Permanent app id -> version mapping, separate from the TTL cache."""

    def __init__(
        self, store: JsonRecordStore, metadata_source: AppMetadataSource
    ) -> None:
        self.store = store
        self.metadata_source = metadata_source

    def lookup(self, app_id: int) -> Optional[str]:
        try:
            value = self.store.load_all().get(str(app_id))
        except PersistenceError as e:
            logger.warning("Legacy version read failed", app_id=app_id, error=str(e))
            return None
        return value if isinstance(value, str) and value else None

    async def resolve(
        self,
        app_id: int,
        placeholder: str,
        fetch: Optional[FetchRecord] = None,
    ) -> str:
        """Return the stored snapshot, creating it on first use.

        ``fetch`` overrides the metadata lookup (the update service passes a
        rate-limited one). On fetch failure ``placeholder`` is returned and
        nothing is stored, so the next call tries again.
        """
        existing = self.lookup(app_id)
        if existing is not None:
            return existing

        fetch_record = fetch or self.metadata_source.fetch_app_metadata
        try:
            record = await fetch_record(app_id)
        except StoreError as e:
            logger.info(
                "Legacy version resolution failed, keeping placeholder",
                app_id=app_id,
                placeholder=placeholder,
                error=str(e),
            )
            return placeholder

        version = derive_version(record)
        self.remember(app_id, version)
        logger.info("Legacy version resolved", app_id=app_id, version=version)
        return version

    def remember(self, app_id: int, version: str) -> None:
        """Explicitly (re-)record the snapshot for ``app_id``."""
        try:
            records = self.store.load_all()
            records[str(app_id)] = version
            self.store.save_all(records)
        except PersistenceError as e:
            logger.warning("Legacy version write failed", app_id=app_id, error=str(e))
