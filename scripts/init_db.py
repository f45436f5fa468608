# scripts/init_db.py
"""
Create the schema and the invoice-number sequence.

    python -m scripts.init_db            # create missing tables only
    python -m scripts.init_db --reset    # drop everything first
"""

import argparse
import logging

from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from chitfund.db.engine import get_engine
from chitfund.db.repository import INVOICE_COUNTER
from chitfund.db.schema import counters, metadata

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create the chit fund database schema")
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    args = parser.parse_args(argv)

    engine = get_engine()
    if args.reset:
        metadata.drop_all(engine)
        logger.warning("Dropped all tables")
    metadata.create_all(engine)

    with engine.begin() as conn:
        conn.execute(
            sqlite_insert(counters)
            .values(name=INVOICE_COUNTER, value=0)
            .on_conflict_do_nothing(index_elements=[counters.c.name])
        )
    logger.info("DB schema created at %s", engine.url)


if __name__ == "__main__":
    main()
