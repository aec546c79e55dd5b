"""
Staff capacity.

A staff member is free at a time of day when their schedule lists that start
time and they are not "with a patient". A session keeps its staff member busy
only for its first 30 minutes, so a new session may start half way through
one already running.
"""

import logging
from datetime import date, time

from backend.core.exceptions import InvalidInputError
from backend.core.timeslots import is_with_patient, parse_time
from backend.models.staff import Staff
from backend.repositories.booking_repository import BookingRepository
from backend.services.schedule import StaffSchedule

logger = logging.getLogger(__name__)


class CapacityOracle:
    """Answers "is this staff member free?"; caches per instance, so use one per request."""

    def __init__(self, bookings: BookingRepository):
        self.bookings = bookings
        self._schedules: dict[int, StaffSchedule] = {}
        self._session_starts: dict[tuple[int, date], list[time]] = {}

    def schedule_for(self, staff: Staff) -> StaffSchedule:
        schedule = self._schedules.get(staff.id)
        if schedule is None:
            try:
                schedule = StaffSchedule.from_json(staff.availability)
            except InvalidInputError as exc:
                logger.error(
                    'Stored availability of staff %s is malformed; treating as unschedulable: %s',
                    staff.id,
                    exc.message,
                )
                schedule = StaffSchedule()
            self._schedules[staff.id] = schedule
        return schedule

    def session_starts(self, staff_id: int, day: date) -> list[time]:
        key = (staff_id, day)
        if key not in self._session_starts:
            self._session_starts[key] = self.bookings.staff_session_starts(staff_id, day)
        return self._session_starts[key]

    def is_schedulable(self, staff: Staff, day: date, at: time) -> bool:
        return self.schedule_for(staff).is_schedulable(day, at)

    def is_occupied(self, staff: Staff, day: date, at: time) -> bool:
        return any(is_with_patient(start, at) for start in self.session_starts(staff.id, day))

    def is_staff_free(self, staff: Staff, day: date, at: time) -> bool:
        at = parse_time(at)
        return self.is_schedulable(staff, day, at) and not self.is_occupied(staff, day, at)

    def free_staff(self, candidates: list[Staff], day: date, at: time) -> list[Staff]:
        return [staff for staff in candidates if self.is_staff_free(staff, day, at)]
