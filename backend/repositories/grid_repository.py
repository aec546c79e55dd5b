"""
Availability grid data access.

The grid is the single source of truth for room occupancy: one row per
(room, date, half-hour mark), unique on that key.
"""

import logging
from collections import defaultdict
from datetime import date, time

from sqlalchemy.orm import Session

from backend.models.availability import GridCell, SlotStatus

logger = logging.getLogger(__name__)


class GridRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_cell(self, room_id: int, day: date, mark: time) -> GridCell | None:
        return (
            self.db.query(GridCell)
            .filter(GridCell.room_id == room_id, GridCell.date == day, GridCell.time_slot == mark)
            .first()
        )

    def cells_by_room(self, room_ids: list[int], day: date) -> dict[int, dict[time, GridCell]]:
        """Every materialized cell of the given rooms on ``day``, keyed room -> mark."""
        grouped: dict[int, dict[time, GridCell]] = defaultdict(dict)
        if not room_ids:
            return grouped

        cells = (
            self.db.query(GridCell)
            .filter(GridCell.room_id.in_(room_ids), GridCell.date == day)
            .all()
        )
        for cell in cells:
            grouped[cell.room_id][cell.time_slot] = cell
        return grouped

    def cells_for_booking(self, booking_id: int) -> list[GridCell]:
        return (
            self.db.query(GridCell)
            .filter(GridCell.booking_id == booking_id)
            .order_by(GridCell.date.asc(), GridCell.time_slot.asc())
            .all()
        )

    def put(
        self,
        branch_id: int,
        room_id: int,
        day: date,
        mark: time,
        status: SlotStatus,
        booking_id: int | None = None,
    ) -> GridCell:
        """Insert or overwrite one cell."""
        cell = self.get_cell(room_id, day, mark)
        if cell is None:
            return self.create(branch_id, room_id, day, mark, status, booking_id)
        return self.overwrite(cell, status, booking_id)

    def create(
        self,
        branch_id: int,
        room_id: int,
        day: date,
        mark: time,
        status: SlotStatus,
        booking_id: int | None = None,
    ) -> GridCell:
        cell = GridCell(
            branch_id=branch_id,
            room_id=room_id,
            date=day,
            time_slot=mark,
            status=status.value,
            booking_id=booking_id,
        )
        self.db.add(cell)
        return cell

    def overwrite(self, cell: GridCell, status: SlotStatus, booking_id: int | None = None) -> GridCell:
        cell.status = status.value
        cell.booking_id = booking_id
        return cell

    def mark_booked(self, branch_id: int, room_id: int, day: date, marks: tuple[time, ...], booking_id: int) -> None:
        for mark in marks:
            self.put(branch_id, room_id, day, mark, SlotStatus.BOOKED, booking_id)
        self.db.flush()

    def release_booking(self, booking_id: int) -> int:
        released = (
            self.db.query(GridCell)
            .filter(GridCell.booking_id == booking_id)
            .update(
                {GridCell.status: SlotStatus.AVAILABLE.value, GridCell.booking_id: None},
                synchronize_session='fetch',
            )
        )
        logger.debug('Released %s grid cells held by booking %s', released, booking_id)
        return released

    def delete_before(self, cutoff: date) -> int:
        return (
            self.db.query(GridCell)
            .filter(GridCell.date < cutoff)
            .delete(synchronize_session=False)
        )
