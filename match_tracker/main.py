#!/usr/bin/env python3
"""
match-tracker Service - Main entry point

This service polls the Riot Games API for the match histories of tracked
accounts and emits an event to the message bus for every newly completed
League of Legends or TFT match.
"""
import asyncio
import logging
import signal
import sys
import argparse
from typing import List, Optional

import structlog

from match_tracker.config import Config
from match_tracker.adapters.riot_api import FatalAPIError
from match_tracker.service import MatchTrackerService


logger = logging.getLogger(__name__)


def configure_logging(config: Config) -> None:
    """Configure stdlib logging and structlog from the service configuration."""
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Set httpx and httpcore loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if config.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="match-tracker service")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single polling cycle per game type, then exit",
    )
    return parser.parse_args(argv)


async def main(once: bool = False) -> int:
    """Main entry point for the match-tracker service.

    Args:
        once: Run a single polling cycle instead of the polling loop

    Returns:
        Process exit code
    """
    config = Config.from_env()
    configure_logging(config)

    logger.info("Starting match-tracker service")

    service = MatchTrackerService(config)

    # Handle graceful shutdown
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, service.request_stop)

    exit_code = 0
    try:
        if once:
            for report in await service.run_once():
                logger.info(f"{report.game_type.value} cycle: {report}")
        else:
            await service.start()
    except FatalAPIError as e:
        logger.critical(f"Fatal Riot API error, shutting down: {e}")
        exit_code = 1
    except Exception as e:
        logger.error(f"Service failed with error: {e}", exc_info=True)
        exit_code = 1
    finally:
        await service.stop()
        logger.info("match-tracker service stopped")

    return exit_code


def run() -> None:
    """Console script entry point."""
    args = parse_args()
    sys.exit(asyncio.run(main(once=args.once)))


if __name__ == "__main__":
    run()
