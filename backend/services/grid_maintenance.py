"""
Grid maintenance batch jobs.

``initialize_grid`` materializes half-hour cells for the next N days from
each branch's opening hours; ``prune_old_availability`` retires past cells
and past one-day overrides in staff schedules.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy.orm import Session

from backend.core import config
from backend.core.exceptions import InvalidInputError, NotFoundError
from backend.core.timeslots import half_hour_marks
from backend.database import transaction
from backend.models.availability import SlotStatus
from backend.models.branch import Branch
from backend.repositories.branch_repository import BranchRepository
from backend.repositories.grid_repository import GridRepository
from backend.repositories.room_repository import RoomRepository
from backend.repositories.staff_repository import StaffRepository
from backend.services.opening_hours import opening_hours_for
from backend.services.schedule import strip_overrides_before

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PruneResult:
    deleted_slots: int
    updated_staff_records: int


def _initialize_branch(
    grid: GridRepository,
    rooms: RoomRepository,
    branch: Branch,
    start_day: date,
    days: int,
    force: bool,
) -> int:
    branch_rooms = rooms.list_for_branch(branch.id)
    if not branch_rooms:
        logger.warning('No rooms found for branch %s (%s)', branch.name, branch.id)
        return 0

    room_ids = [room.id for room in branch_rooms]
    written = 0

    for offset in range(days):
        day = start_day + timedelta(days=offset)
        hours = opening_hours_for(branch, day)
        if hours is None:
            marks = half_hour_marks()
            status = SlotStatus.UNAVAILABLE
        else:
            marks = half_hour_marks(*hours)
            status = SlotStatus.AVAILABLE

        existing = grid.cells_by_room(room_ids, day)
        for room_id in room_ids:
            room_cells = existing.get(room_id, {})
            for mark in marks:
                cell = room_cells.get(mark)
                if cell is None:
                    grid.create(branch.id, room_id, day, mark, status)
                elif force and cell.status != SlotStatus.BOOKED.value:
                    grid.overwrite(cell, status)
                else:
                    continue
                written += 1

    return written


def initialize_grid(
    db: Session,
    days: int | None = None,
    branch_id: int | None = None,
    force: bool = False,
    today: date | None = None,
) -> int:
    """Create (or, with ``force``, overwrite) grid cells; returns how many were written.

    Cells booked by a live booking are never overwritten.
    """
    days = config.GRID_INIT_DAYS if days is None else days
    if days < 1:
        raise InvalidInputError('days must be at least 1.', details={'days': days})

    start_day = today or date.today()
    branches = BranchRepository(db).list_branches(branch_id)
    if branch_id is not None and not branches:
        raise NotFoundError('Branch not found', details={'branch_id': branch_id})
    if not branches:
        logger.warning('No branches found; nothing to initialize')
        return 0

    grid = GridRepository(db)
    rooms = RoomRepository(db)
    total = 0

    for branch in branches:
        with transaction(db):
            written = _initialize_branch(grid, rooms, branch, start_day, days, force)
        logger.info('Initialized %s grid cells for branch %s (%s)', written, branch.name, branch.id)
        total += written

    logger.info('Grid initialization complete: %s cells created/updated over %s days', total, days)
    return total


def prune_old_availability(db: Session, cutoff: date) -> PruneResult:
    """Delete grid cells before ``cutoff`` and drop staff date overrides before it."""
    staff_repository = StaffRepository(db)

    with transaction(db):
        deleted_slots = GridRepository(db).delete_before(cutoff)

        updated_staff_records = 0
        for staff in staff_repository.list_all():
            pruned = strip_overrides_before(staff.availability, cutoff)
            if pruned is None:
                continue
            staff_repository.save_availability(staff, pruned)
            updated_staff_records += 1

    logger.info(
        'Pruned availability before %s: %s grid cells deleted, %s staff records updated',
        cutoff.isoformat(),
        deleted_slots,
        updated_staff_records,
    )
    return PruneResult(deleted_slots=deleted_slots, updated_staff_records=updated_staff_records)
