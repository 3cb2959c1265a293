"""Main entry point for the Steam Catalog addon."""

import argparse
import asyncio
import logging
import re
import signal
import sys
from pathlib import Path
from typing import Any, Dict

import structlog

from src import __version__
from src.addon import AddonEventRouter, AddonHandlers, StdioBridge
from src.config import Settings, load_config
from src.exceptions import ConfigurationError
from src.steam.app_index import AppIndex
from src.steam.client import SteamClient
from src.storage import JsonRecordStore
from src.updates import (
    AppRateLimiter,
    LegacyVersionResolver,
    UpdateService,
    VersionCache,
)

_STEAM_KEY_QUERY_RE = re.compile(r"([?&]key=)[^&\s\"']+", re.IGNORECASE)


def redact_sensitive_text(text: str) -> str:
    """Redact Steam Web API keys from log text."""
    return _STEAM_KEY_QUERY_RE.sub(r"\1<redacted>", text)


class SensitiveLogFilter(logging.Filter):
    """Filter log records to avoid leaking secrets."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_sensitive_text(message)
        if redacted != message:
            # Keep a pre-formatted safe message to avoid re-inserting args.
            record.msg = redacted
            record.args = ()
        return True


def setup_logging(debug: bool = False, level_name: str = "INFO") -> None:
    """Configure structured logging on stderr; stdout carries the host protocol."""
    level = logging.DEBUG if debug else getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )
    sensitive_filter = SensitiveLogFilter()
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.addFilter(sensitive_filter)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            (
                structlog.processors.JSONRenderer()
                if not debug
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Steam Catalog addon",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version", action="version", version=f"Steam Catalog {__version__}"
    )

    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    parser.add_argument("--config-file", type=Path, help="Path to configuration file")

    return parser.parse_args()


def create_application(config: Settings) -> Dict[str, Any]:
    """Create and wire the application components."""
    logger = structlog.get_logger()
    logger.info("Creating application components", data_dir=str(config.data_dir))

    client = SteamClient(config)
    app_index = AppIndex(
        client,
        JsonRecordStore(config.app_list_path),
        ttl_seconds=config.app_list_ttl_seconds,
        score_cutoff=config.search_score_cutoff,
    )

    version_cache = VersionCache(
        JsonRecordStore(config.version_cache_path),
        ttl_seconds=config.version_cache_ttl_seconds,
    )
    rate_limiter = AppRateLimiter(config.update_cooldown_seconds)
    legacy_resolver = None
    if config.legacy_version_bootstrap:
        legacy_resolver = LegacyVersionResolver(
            JsonRecordStore(config.legacy_versions_path), client
        )
    update_service = UpdateService(
        client,
        version_cache,
        rate_limiter,
        legacy_resolver,
        cooldown_seconds=config.update_cooldown_seconds,
    )

    handlers = AddonHandlers(config, client, app_index, update_service)
    router = AddonEventRouter(handlers)

    logger.info("Application components created successfully")

    return {
        "bridge": StdioBridge(router),
        "router": router,
        "client": client,
        "update_service": update_service,
        "config": config,
    }


async def run_application(app: Dict[str, Any]) -> None:
    """Serve the host until it disconnects or a shutdown signal arrives."""
    logger = structlog.get_logger()
    bridge: StdioBridge = app["bridge"]
    client: SteamClient = app["client"]
    update_service: UpdateService = app["update_service"]

    shutdown_event = asyncio.Event()

    def signal_handler(signum: int, frame: Any) -> None:
        logger.info("Shutdown signal received", signal=signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        logger.info("Starting Steam Catalog addon")

        bridge_task = asyncio.create_task(bridge.serve())
        shutdown_task = asyncio.create_task(shutdown_event.wait())

        done, pending = await asyncio.wait(
            [bridge_task, shutdown_task], return_when=asyncio.FIRST_COMPLETED
        )

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if bridge_task in done and not bridge_task.cancelled():
            exc = bridge_task.exception()
            if exc is not None:
                raise exc

    except Exception as e:
        logger.error("Application error", error=str(e))
        raise
    finally:
        logger.info("Shutting down application")

        try:
            await update_service.close()
            await client.close()
        except Exception as e:
            logger.error("Error during shutdown", error=str(e))

        logger.info("Application shutdown complete")


async def main() -> None:
    """Main application entry point."""
    args = parse_args()
    setup_logging(debug=args.debug)

    logger = structlog.get_logger()
    logger.info("Starting Steam Catalog", version=__version__)

    try:
        config = load_config(config_file=args.config_file)
        if not args.debug:
            logging.getLogger().setLevel(config.log_level)

        logger.info(
            "Configuration loaded",
            environment="production" if config.is_production else "development",
            debug=config.debug,
            steam_search_limit=config.steam_search_limit,
            legacy_version_bootstrap=config.legacy_version_bootstrap,
        )

        app = create_application(config)
        await run_application(app)

    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error", error=str(e))
        sys.exit(1)


def run() -> None:
    """Synchronous entry point for setuptools."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
