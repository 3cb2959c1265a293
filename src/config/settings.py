"""Configuration management using Pydantic Settings.

Features:
- Environment variable loading
- Type validation
- Default values
- Computed properties
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.utils.constants import (
    APP_LIST_FILENAME,
    DEFAULT_APP_LIST_TTL_HOURS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_SEARCH_SCORE_CUTOFF,
    DEFAULT_SEARCH_STAGGER_CAP_SECONDS,
    DEFAULT_SEARCH_STAGGER_SECONDS,
    DEFAULT_STEAM_SEARCH_LIMIT,
    DEFAULT_UPDATE_COOLDOWN_SECONDS,
    DEFAULT_USER_AGENT,
    DEFAULT_VERSION_CACHE_TTL_HOURS,
    LEGACY_VERSIONS_FILENAME,
    MAX_STEAM_SEARCH_LIMIT,
    MIN_STEAM_SEARCH_LIMIT,
    STEAM_STORE_URL,
    STEAM_WEB_API_URL,
    STEAMCMD_API_URL,
    VERSION_CACHE_FILENAME,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    data_dir: Path = Field(
        Path("data"), description="Directory holding cache and state files"
    )

    # Steam
    steam_api_key: Optional[SecretStr] = Field(
        None, description="Steam Web API key used for the app list download"
    )
    steam_store_url: str = Field(STEAM_STORE_URL, description="Steam store base URL")
    steam_web_api_url: str = Field(
        STEAM_WEB_API_URL, description="Steam Web API base URL"
    )
    steamcmd_api_url: str = Field(
        STEAMCMD_API_URL, description="SteamCMD app info API base URL"
    )
    user_agent: str = Field(DEFAULT_USER_AGENT, description="HTTP User-Agent")
    http_timeout_seconds: float = Field(
        DEFAULT_HTTP_TIMEOUT_SECONDS, description="HTTP request timeout", gt=0
    )

    # Library search
    steam_search_limit: int = Field(
        DEFAULT_STEAM_SEARCH_LIMIT,
        description="Number of Steam apps looked up per library search",
        ge=MIN_STEAM_SEARCH_LIMIT,
        le=MAX_STEAM_SEARCH_LIMIT,
    )
    search_score_cutoff: float = Field(
        DEFAULT_SEARCH_SCORE_CUTOFF,
        description="Minimum fuzzy match score (0-100) for search results",
        ge=0,
        le=100,
    )
    search_stagger_seconds: float = Field(
        DEFAULT_SEARCH_STAGGER_SECONDS,
        description="Delay step between app detail lookups in one search",
        ge=0,
    )
    search_stagger_cap_seconds: float = Field(
        DEFAULT_SEARCH_STAGGER_CAP_SECONDS,
        description="Upper bound for the per-lookup search delay",
        ge=0,
    )
    app_list_ttl_hours: float = Field(
        DEFAULT_APP_LIST_TTL_HOURS,
        description="Max age of the on-disk Steam app list",
        gt=0,
    )

    # Update checks
    update_cooldown_seconds: float = Field(
        DEFAULT_UPDATE_COOLDOWN_SECONDS,
        description="Minimum delay between metadata calls for one app",
        ge=0,
    )
    version_cache_ttl_hours: float = Field(
        DEFAULT_VERSION_CACHE_TTL_HOURS,
        description="Max age of a cached app version",
        gt=0,
    )
    legacy_version_bootstrap: bool = Field(
        True,
        description="Resolve placeholder versions (1.0 / 1.0.0) via a one-time snapshot",
    )

    # Monitoring
    log_level: str = Field("INFO", description="Logging level")

    # Development
    debug: bool = Field(False, description="Enable debug mode")
    development_mode: bool = Field(False, description="Enable development features")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()  # type: ignore[no-any-return]

    @field_validator("steam_store_url", "steam_web_api_url", "steamcmd_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: Any) -> str:
        """Normalize base URLs so paths can be appended."""
        return str(v).rstrip("/")

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not (self.debug or self.development_mode)

    @property
    def version_cache_path(self) -> Path:
        return self.data_dir / VERSION_CACHE_FILENAME

    @property
    def legacy_versions_path(self) -> Path:
        return self.data_dir / LEGACY_VERSIONS_FILENAME

    @property
    def app_list_path(self) -> Path:
        return self.data_dir / APP_LIST_FILENAME

    @property
    def version_cache_ttl_seconds(self) -> float:
        return self.version_cache_ttl_hours * 3600

    @property
    def app_list_ttl_seconds(self) -> float:
        return self.app_list_ttl_hours * 3600

    @property
    def steam_api_key_str(self) -> Optional[str]:
        """Get Steam API key as string."""
        return self.steam_api_key.get_secret_value() if self.steam_api_key else None
