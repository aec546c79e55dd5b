"""
Booking data access.

Bookings are the source of truth for staff occupancy. Overlap and
"with patient" checks fetch the candidate rows for one date and apply the
interval arithmetic from ``backend.core.timeslots`` in Python, so the same
predicate holds on every database engine.
"""

from dataclasses import dataclass
from datetime import date, time

from sqlalchemy.orm import Session

from backend.core.timeslots import intervals_overlap, is_with_patient
from backend.models.booking import Booking, BookingStatus


@dataclass
class BookingFilters:
    branch_id: int | None = None
    staff_id: int | None = None
    room_id: int | None = None
    patient_id: int | None = None
    day: date | None = None
    date_from: date | None = None
    date_to: date | None = None
    status: str | None = None


class BookingRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, booking_id: int) -> Booking | None:
        return self.db.get(Booking, booking_id)

    def lock(self, booking_id: int) -> Booking | None:
        return self.db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()

    def add(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.flush()
        return booking

    def _active(self):
        return self.db.query(Booking).filter(Booking.status != BookingStatus.CANCELLED.value)

    def room_overlaps(
        self,
        room_id: int,
        day: date,
        start: time,
        end: time | None,
        exclude_booking_id: int | None = None,
    ) -> list[Booking]:
        """Non-cancelled bookings of a room whose interval overlaps ``[start, end)``."""
        query = self._active().filter(Booking.room_id == room_id, Booking.date == day)
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)

        return [
            booking for booking in query.order_by(Booking.start_time.asc()).all()
            if intervals_overlap(booking.start_time, booking.end_time, start, end)
        ]

    def has_room_overlap(self, room_id: int, day: date, start: time, end: time | None) -> bool:
        return bool(self.room_overlaps(room_id, day, start, end))

    def staff_session_starts(self, staff_id: int, day: date) -> list[time]:
        rows = (
            self._active()
            .with_entities(Booking.start_time)
            .filter(Booking.staff_id == staff_id, Booking.date == day)
            .order_by(Booking.start_time.asc())
            .all()
        )
        return [start_time for (start_time,) in rows]

    def staff_with_patient(self, staff_id: int, day: date, at: time) -> bool:
        return any(is_with_patient(start, at) for start in self.staff_session_starts(staff_id, day))

    def search(self, filters: BookingFilters, page: int = 1, per_page: int = 15) -> tuple[list[Booking], int]:
        query = self.db.query(Booking)

        if filters.branch_id is not None:
            query = query.filter(Booking.branch_id == filters.branch_id)
        if filters.staff_id is not None:
            query = query.filter(Booking.staff_id == filters.staff_id)
        if filters.room_id is not None:
            query = query.filter(Booking.room_id == filters.room_id)
        if filters.patient_id is not None:
            query = query.filter(Booking.patient_id == filters.patient_id)
        if filters.day is not None:
            query = query.filter(Booking.date == filters.day)
        if filters.date_from is not None:
            query = query.filter(Booking.date >= filters.date_from)
        if filters.date_to is not None:
            query = query.filter(Booking.date <= filters.date_to)
        if filters.status is not None:
            query = query.filter(Booking.status == filters.status)

        total = query.count()
        items = (
            query.order_by(Booking.date.desc(), Booking.start_time.desc(), Booking.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return items, total
