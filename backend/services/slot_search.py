"""
Slot search.

Scans forward from the preferred date and time, half an hour at a time, for
the first one-hour slot where a compatible room has both grid cells
``Available`` and a certified staff member is free. The search is read-only
and takes no locks; the booking engine re-validates under locks at commit.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Callable

from sqlalchemy.orm import Session

from backend.core import config
from backend.core.exceptions import BranchClosedError
from backend.core.timeslots import (
    SESSION_MINUTES,
    SLOT_MINUTES,
    ceil_to_slot,
    format_time,
    from_minutes,
    session_cells,
    to_minutes,
)
from backend.models.availability import GridCell, SlotStatus
from backend.models.branch import Treatment
from backend.models.room import Room
from backend.models.staff import Staff
from backend.repositories.booking_repository import BookingRepository
from backend.repositories.grid_repository import GridRepository
from backend.services.capacity import CapacityOracle
from backend.services.compatibility import CompatibilityResolver, validate_patient_gender
from backend.services.opening_hours import opening_hours_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    date: date
    start_time: time
    end_time: time
    room: Room
    staff: Staff
    treatment: Treatment

    def to_dict(self) -> dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'start_time': format_time(self.start_time),
            'end_time': format_time(self.end_time),
            'staff': {'id': self.staff.id, 'name': self.staff.name},
            'room': {'id': self.room.id, 'name': self.room.name},
            'treatment': {'id': self.treatment.id, 'name': self.treatment.name},
        }


class SlotSearchEngine:
    def __init__(
        self,
        resolver: CompatibilityResolver,
        grid: GridRepository,
        bookings: BookingRepository,
        horizon_days: int | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.resolver = resolver
        self.grid = grid
        self.bookings = bookings
        self.horizon_days = horizon_days or config.SEARCH_HORIZON_DAYS
        self.clock = clock

    @classmethod
    def for_session(cls, db: Session, **kwargs) -> 'SlotSearchEngine':
        return cls(
            CompatibilityResolver.for_session(db),
            GridRepository(db),
            BookingRepository(db),
            **kwargs,
        )

    def is_room_free(
        self,
        room: Room,
        day: date,
        start: time,
        room_cells: dict[time, GridCell] | None,
    ) -> bool:
        if not room_cells:
            # Grid not materialized for this room/date yet.
            return not self.bookings.has_room_overlap(room.id, day, start, None)

        for mark in session_cells(start):
            cell = room_cells.get(mark)
            if cell is None or cell.status != SlotStatus.AVAILABLE.value:
                return False
        return True

    def find_slot(
        self,
        branch_id: int,
        treatment_id: int,
        patient_gender: str,
        preferred_date: date | None = None,
        preferred_time: time | None = None,
    ) -> Slot | None:
        branch = self.resolver.require_branch(branch_id)
        if not branch.is_open:
            raise BranchClosedError('Branch is currently closed', details={'branch_id': branch_id})

        treatment = self.resolver.require_treatment(treatment_id)
        gender = validate_patient_gender(patient_gender)

        rooms = self.resolver.compatible_rooms(branch_id, treatment_id, gender)
        staff = self.resolver.compatible_staff(branch_id, treatment_id)
        room_ids = [room.id for room in rooms]
        oracle = CapacityOracle(self.bookings)

        now = self.clock()
        current_day = preferred_date or now.date()
        cursor: time | None = preferred_time if preferred_time is not None else now.time()

        for _ in range(self.horizon_days):
            hours = opening_hours_for(branch, current_day)
            if hours is None:
                current_day += timedelta(days=1)
                cursor = None
                continue

            open_time, close_time = hours
            minutes = ceil_to_slot(open_time)
            if cursor is not None:
                minutes = max(ceil_to_slot(cursor), minutes)
            close_minutes = to_minutes(close_time)
            cells = self.grid.cells_by_room(room_ids, current_day)

            while minutes + SESSION_MINUTES <= close_minutes:
                start = from_minutes(minutes)
                available_rooms = [
                    room for room in rooms
                    if self.is_room_free(room, current_day, start, cells.get(room.id))
                ]
                available_staff = oracle.free_staff(staff, current_day, start) if available_rooms else []

                if available_rooms and available_staff:
                    room = available_rooms[0]
                    if room.accepts(gender):
                        return Slot(
                            date=current_day,
                            start_time=start,
                            end_time=from_minutes(minutes + SESSION_MINUTES),
                            room=room,
                            staff=available_staff[0],
                            treatment=treatment,
                        )
                    logger.error(
                        'Room %s (%s) passed compatibility filtering for a %s patient',
                        room.id,
                        room.gender,
                        gender,
                    )

                minutes += SLOT_MINUTES

            current_day += timedelta(days=1)
            cursor = None

        logger.info(
            'No slot found for branch %s treatment %s within %s days',
            branch_id,
            treatment_id,
            self.horizon_days,
        )
        return None
