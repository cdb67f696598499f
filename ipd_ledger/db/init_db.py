# ipd_ledger/db/init_db.py
from __future__ import annotations

import argparse
import logging
from typing import Optional

from sqlalchemy.engine import Engine

from ipd_ledger.db.session import engine as default_engine
from ipd_ledger.db.base import Base

# Import all models so metadata is complete
from ipd_ledger.models import audit, episode, ledger  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Optional[Engine] = None) -> None:
    """
    Create missing tables; safe to run multiple times.
    """
    eng = engine or default_engine
    Base.metadata.create_all(bind=eng)
    logger.info("Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


def main() -> None:
    parser = argparse.ArgumentParser(description="Create IPD ledger tables")
    parser.add_argument("--drop", action="store_true", help="drop all tables first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    if args.drop:
        Base.metadata.drop_all(bind=default_engine)
        logger.info("Dropped all tables")
    init_db()


if __name__ == "__main__":
    main()
