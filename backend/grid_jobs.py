"""Availability grid batch jobs.

Usage:
    python -m backend.grid_jobs initialize --days 30 [--branch 3] [--force]
    python -m backend.grid_jobs prune [--days-ago 0]

Both are meant to run daily from cron.
"""
import argparse
import logging
import sys
from datetime import date, timedelta

from backend.core import config
from backend.core.exceptions import SchedulingError
from backend.database import Base, SessionLocal, engine
from backend.models import availability, booking, branch, patient, room, staff  # noqa: F401
from backend.services.grid_maintenance import initialize_grid, prune_old_availability

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Availability grid maintenance')
    subcommands = parser.add_subparsers(dest='command', required=True)

    initialize = subcommands.add_parser('initialize', help='Initialize the room availability grid for the next N days')
    initialize.add_argument('--days', type=int, default=config.GRID_INIT_DAYS, help='Number of days to initialize')
    initialize.add_argument('--branch', type=int, default=None, help='Only this branch ID')
    initialize.add_argument('--force', action='store_true', help='Overwrite existing cells (booked cells are kept)')

    prune = subcommands.add_parser('prune', help='Delete past grid cells and past staff date overrides')
    prune.add_argument('--days-ago', type=int, default=0, help='Prune data older than N days before today')

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if args.command == 'initialize':
            total = initialize_grid(db, days=args.days, branch_id=args.branch, force=args.force)
            print(f'Total slots created/updated: {total}')
        else:
            cutoff = date.today() - timedelta(days=args.days_ago)
            result = prune_old_availability(db, cutoff)
            print(f'Deleted {result.deleted_slots} room availability slots.')
            print(f'Updated {result.updated_staff_records} staff availability records.')
    except SchedulingError as exc:
        logger.error('%s', exc.message)
        return 1
    finally:
        db.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
