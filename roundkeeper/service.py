from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from weeklotto import db
from weeklotto.config import load_settings

from .config import load_config
from .round_client import RoundStoreClient
from .scheduler import RoundScheduler
from .types import CycleResult


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


async def run(args: argparse.Namespace) -> Optional[CycleResult]:
    settings = load_config(args.env_file)
    configure_logging(args.verbose)
    logger = logging.getLogger("roundkeeper.scheduler")

    # The env file may carry DATABASE_URL, so rebind after it is loaded.
    load_settings.cache_clear()
    database_url = args.database_url or load_settings().database_url
    db.configure_engine(database_url)
    await asyncio.to_thread(db.init_db)
    logger.debug("Round store bound to %s", database_url)
    scheduler = RoundScheduler(settings, RoundStoreClient(), logger=logger)

    if args.once or settings.run_once:
        result = await scheduler.run_once()
        logger.info(
            "Cycle finished: closed=%s repaired=%s created=%s",
            result.closed_round_ids,
            result.repaired_round_ids,
            result.created_round_id,
        )
        return result

    await scheduler.run_forever()
    return None


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Weekly lottery round scheduler")
    parser.add_argument("--env-file", type=str, default=None, help="Path to .env file with settings")
    parser.add_argument(
        "--database-url", type=str, default=None, help="Override DATABASE_URL for the round store."
    )
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit.")
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging (default INFO)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("Round scheduler stopped by user.")


if __name__ == "__main__":
    main()
