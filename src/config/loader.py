"""Load validated settings from the environment and an optional env file."""

from pathlib import Path
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from src.exceptions import ConfigurationError

from .settings import Settings

logger = structlog.get_logger()


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> Settings:
    """Build ``Settings``; ``config_file`` replaces the default ``.env``."""
    if config_file is not None and not config_file.is_file():
        raise ConfigurationError(f"Config file does not exist: {config_file}")

    try:
        if config_file is not None:
            settings = Settings(_env_file=config_file, **overrides)  # type: ignore[call-arg]
        else:
            settings = Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.debug(
        "Settings loaded",
        config_file=str(config_file) if config_file else None,
        data_dir=str(settings.data_dir),
    )
    return settings
