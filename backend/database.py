import logging
from contextlib import contextmanager
from threading import Lock
from typing import Iterator

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backend.core import config

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True}


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any failure.

    Row locks taken inside the block are held until the commit or rollback.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        logger.error('Scheduling transaction failed: %s', exc)
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise


def ensure_scheduling_schema() -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())

        statements = []
        if 'room_availability_slots' in table_names:
            statements.extend([
                'CREATE INDEX IF NOT EXISTS idx_grid_branch_date_time ON room_availability_slots(branch_id, date, time_slot)',
                'CREATE INDEX IF NOT EXISTS idx_grid_status ON room_availability_slots(status)',
                'CREATE INDEX IF NOT EXISTS idx_grid_booking ON room_availability_slots(booking_id)',
            ])
        if 'bookings' in table_names:
            statements.extend([
                'CREATE INDEX IF NOT EXISTS idx_booking_branch_date_time ON bookings(branch_id, date, start_time)',
                'CREATE INDEX IF NOT EXISTS idx_booking_staff_date_time ON bookings(staff_id, date, start_time)',
                'CREATE INDEX IF NOT EXISTS idx_booking_patient ON bookings(patient_id)',
            ])

        with engine.begin() as connection:
            for statement in statements:
                connection.execute(text(statement))

        _scheduling_schema_checked = True
