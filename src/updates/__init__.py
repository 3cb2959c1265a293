"""Update resolution: version cache, rate limiting and per-app coalescing."""

from .legacy_versions import LegacyVersionResolver, is_placeholder_version
from .metadata import AppMetadataSource, derive_version
from .rate_limiter import AppRateLimiter
from .service import UpdateCheckResult, UpdateService
from .version_cache import VersionCache, VersionCacheEntry

__all__ = [
    "AppMetadataSource",
    "AppRateLimiter",
    "LegacyVersionResolver",
    "UpdateCheckResult",
    "UpdateService",
    "VersionCache",
    "VersionCacheEntry",
    "derive_version",
    "is_placeholder_version",
]
