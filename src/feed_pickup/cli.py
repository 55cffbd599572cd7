"""CLI for running one feed pickup cycle."""

from __future__ import annotations

import argparse
import logging
import sys

from common.cli_helpers import setup_logging
from feed_pickup.channel import FeedChannel
from feed_pickup.config import get_config, load_config, set_config
from feed_pickup.errors import FeedError
from feed_pickup.models import CycleOutcome

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download the channel's listing feed if the remote copy changed"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Config name under configs/ or a path to a YAML file (default: $FEED_PICKUP_CONFIG or 'prod').",
    )
    parser.add_argument("--channel", default=None, help="Channel id (overrides config).")
    parser.add_argument(
        "--force-unlock",
        action="store_true",
        help="Remove the process lock file before running.",
    )
    parser.add_argument("--clear", action="store_true", help="Delete downloaded feed files and exit.")
    parser.add_argument(
        "--generate-report",
        action="store_true",
        help="Write buffered listing statuses to the report file after the cycle.",
    )
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        set_config(load_config(args.config, channel_id=args.channel))
    except (FileNotFoundError, ValueError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    config = get_config()

    try:
        channel = FeedChannel(config)

        if args.force_unlock:
            channel.lock.force_unlock()

        if args.clear:
            channel.clear_feed_files()
            return 0

        result = channel.check_and_get_new_file()
        logger.info("Cycle for %s finished: %s", config.channel_id, result.outcome.value)

        if args.generate_report and config.report.enabled:
            channel.generate_report_file()
    except FeedError as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        logger.error("File system error for channel %s: %s", config.channel_id, e)
        return 1

    return 1 if result.outcome is CycleOutcome.FAILED else 0


if __name__ == "__main__":
    sys.exit(main())
