# scripts/update_arrears.py
"""
Daily arrear refresh, meant for cron:

    0 1 * * * cd /srv/chitfund && python -m scripts.update_arrears

Writes only on the 21st and on month ends; pass --force to write
regardless of the day, --as-of to run for another date.
"""

import argparse
import logging
from datetime import date

from chitfund.billing.arrears import refresh_arrears
from chitfund.config import get_settings
from chitfund.db.engine import get_engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--force", action="store_true", help="ignore the day-of-month gate")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None)
    args = parser.parse_args(argv)

    settings = get_settings()
    now = settings.now()
    as_of = args.as_of or now.date()

    engine = get_engine()
    with engine.begin() as conn:
        results = refresh_arrears(conn, as_of, now.replace(tzinfo=None), force=args.force)

    for entry in results["updated"]:
        logger.info(
            "Enrollment %s (due %s): arrear %s -> %s [%s]",
            entry["enrollment_id"], entry["due_number"],
            entry["previous_arrear"], entry["new_arrear"], entry["reason"],
        )
    for entry in results["errors"]:
        logger.warning("Enrollment %s failed: %s", entry["enrollment_id"], entry["error"])

    return 1 if results["errors"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
