"""Application entry point — opens the block store and wires the services."""

import logging
import sys
from dataclasses import dataclass

from stone_yard.config import Config
from stone_yard.database.connection import DatabaseConnection
from stone_yard.database.repository import Repository
from stone_yard.database.schema import initialize_database
from stone_yard.lifecycle.aggregates import dashboard_stats, queue_lengths
from stone_yard.lifecycle.service import BlockLifecycle
from stone_yard.lifecycle.staff import StaffDirectory
from stone_yard.utils.constants import APP_NAME, APP_VERSION
from stone_yard.utils.formatters import format_sqft, format_weight

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str | None = None):
    """Send log records to stderr at ``Config.LOG_LEVEL``."""
    level = (level or Config.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


@dataclass
class StoneYard:
    """The services a front end needs, sharing one database."""
    db: DatabaseConnection
    repo: Repository
    lifecycle: BlockLifecycle
    staff: StaffDirectory


def open_yard(db_path=None) -> StoneYard:
    """Open (and migrate) the block store and build the services on it."""
    db = DatabaseConnection(db_path or Config.DATABASE_PATH)
    initialize_database(db)
    repo = Repository(db)
    return StoneYard(
        db=db,
        repo=repo,
        lifecycle=BlockLifecycle(repo),
        staff=StaffDirectory(repo),
    )


def main():
    """Print the factory dashboard for the configured database."""
    configure_logging()
    yard = open_yard()
    blocks = yard.lifecycle.blocks()
    stats = dashboard_stats(blocks)
    queues = queue_lengths(blocks)

    print(f"{APP_NAME} {APP_VERSION} ({Config.DATABASE_PATH})")
    print(f"  Gantry stock:   {format_weight(stats['total_gantry_weight'])}")
    print(f"  Cutting now:    {stats['active_cutting_count']}")
    print(f"  Resin queue:    {stats['resin_queue']}")
    print(f"  Ready stock:    {stats['ready_stock_count']}")
    print(f"  Yard area:      {format_sqft(stats['yard_area'])}")
    print(f"  Sold area:      {format_sqft(stats['sold_area'])}")
    print(f"  In transit:     {queues['in_transit']}")


if __name__ == "__main__":
    main()
