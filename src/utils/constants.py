"""Application-wide defaults."""

# Host option limits for ``steam-limit``
DEFAULT_STEAM_SEARCH_LIMIT = 5
MIN_STEAM_SEARCH_LIMIT = 1
MAX_STEAM_SEARCH_LIMIT = 100

# Update checks
DEFAULT_UPDATE_COOLDOWN_SECONDS = 1.5
DEFAULT_VERSION_CACHE_TTL_HOURS = 24
PLACEHOLDER_VERSIONS = frozenset({"1.0", "1.0.0"})
FALLBACK_BUILD_VERSION = "1.0"

# Library search
DEFAULT_APP_LIST_TTL_HOURS = 24
DEFAULT_SEARCH_SCORE_CUTOFF = 70.0
DEFAULT_SEARCH_STAGGER_SECONDS = 0.2
DEFAULT_SEARCH_STAGGER_CAP_SECONDS = 1.0

# HTTP
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = "OGI Steam-Integration/1.0.0"
STEAM_STORE_URL = "https://store.steampowered.com"
STEAM_WEB_API_URL = "https://api.steampowered.com"
STEAMCMD_API_URL = "https://api.steamcmd.net"
STEAM_CDN_URL = "https://cdn.akamai.steamstatic.com"
STEAM_LIBRARY_CDN_URL = "https://steamcdn-a.akamaihd.net"
STEAM_SHARED_CDN_URL = "https://shared.cloudflare.steamstatic.com"

STOREFRONT = "steam"

# State files under the data directory
VERSION_CACHE_FILENAME = "version-cache.json"
LEGACY_VERSIONS_FILENAME = "legacy-versions.json"
APP_LIST_FILENAME = "steam-apps.json"
