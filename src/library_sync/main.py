"""Main application entry point."""

import asyncio
import sys
from typing import Optional

from .api_clients.spotify import SpotifyClient
from .config.settings import AppSettings, load_settings
from .core.connector import LibrarySyncConnector, SyncStats
from .utils.errors import handle_error
from .utils.logging import get_logger, setup_logging


async def main(settings: AppSettings) -> SyncStats:
    """Run one sync of both resource pairs."""
    logger = get_logger("main")
    logger.info("Starting Library Sync", version=settings.version)

    async with SpotifyClient.from_settings(settings.source, settings.api) as source_client, \
            SpotifyClient.from_settings(settings.target, settings.api) as target_client:
        connector = LibrarySyncConnector(settings, source_client, target_client)
        return await connector.run_all()


def run(env_file: Optional[str] = ".env") -> None:
    """Console script entry point. Exits with status 1 on any failure."""
    logger = get_logger("main")

    try:
        settings = load_settings(env_file)
    except Exception as e:
        setup_logging()
        handle_error(e, logger)

    setup_logging(settings.logging)

    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        print("\nSync interrupted by user")
        sys.exit(1)
    except Exception as e:
        handle_error(e, logger)

    logger.info("Library Sync finished")


if __name__ == "__main__":
    run()
