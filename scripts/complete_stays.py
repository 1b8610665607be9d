import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
from datetime import date

import structlog

from rentease.db.engine import engine
from rentease.logging_config import setup_logging
from rentease.services.bookings import complete_elapsed_bookings
from rentease.utils.datetime import utc_now

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """
    Mark confirmed bookings whose check-out day has arrived as completed.

    Meant for a daily cron; completed stays become eligible for reviews.
    """
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Override the current date (YYYY-MM-DD)",
    )
    args = parser.parse_args()
    today = args.today or utc_now().date()

    logger.info("completion_sweep_started", today=str(today))

    try:
        completed = complete_elapsed_bookings(engine, today)
        logger.info("completion_sweep_finished", today=str(today), completed=completed)
    except Exception:
        logger.exception("completion_sweep_failed", today=str(today))
        raise


if __name__ == "__main__":
    main()
