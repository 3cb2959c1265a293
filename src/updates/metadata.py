"""Metadata source contract and version derivation."""

from abc import ABC, abstractmethod

import structlog

from src.steam.models import AppBuildRecord
from src.utils.constants import FALLBACK_BUILD_VERSION

logger = structlog.get_logger()


class AppMetadataSource(ABC):
    """Upstream lookup of an app's latest build."""

    @abstractmethod
    async def fetch_app_metadata(self, app_id: int) -> AppBuildRecord:
        """Return the app's build record.

        Raises:
            AppNotFoundError: upstream does not know ``app_id``.
            TransientFetchError: network or upstream failure.
        """


def derive_version(record: AppBuildRecord) -> str:
    """Build id when upstream exposes one.

    Public-only records without a build id map to the fallback ``"1.0"``.
    """
    if record.build_id:
        return str(record.build_id)
    if not record.public_only:
        logger.warning(
            "Build record has no build id outside a public-only app",
            app_id=record.app_id,
        )
    return FALLBACK_BUILD_VERSION
