"""
Booking commit engine.

Creating a booking runs in one transaction: the requested room and staff
rows are locked with SELECT ... FOR UPDATE, availability is re-checked
against committed bookings and the grid, then the booking row and its two
grid cells are written. Any failure rolls everything back, so a partial
booking or grid change is never visible. Conflicts are reported once; the
caller decides whether to search again.
"""

import logging
from dataclasses import dataclass
from datetime import date, time

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core.exceptions import (
    GenderMismatchError,
    InvalidInputError,
    NotFoundError,
    SlotUnavailableError,
    StaffBusyError,
)
from backend.core.timeslots import (
    default_end_time,
    format_time,
    is_slot_mark,
    normalize_time,
    session_cells,
    to_minutes,
)
from backend.database import transaction
from backend.models.availability import SlotStatus
from backend.models.booking import BOOKING_STATUSES, Booking, BookingStatus
from backend.models.room import Room
from backend.repositories.booking_repository import BookingFilters, BookingRepository
from backend.repositories.branch_repository import BranchRepository
from backend.repositories.grid_repository import GridRepository
from backend.repositories.room_repository import RoomRepository
from backend.repositories.staff_repository import StaffRepository
from backend.services.compatibility import validate_patient_gender

logger = logging.getLogger(__name__)


@dataclass
class BookingRequest:
    branch_id: int
    treatment_id: int
    date: date
    start_time: time
    end_time: time | None = None
    room_id: int | None = None
    staff_id: int | None = None
    patient_id: int | None = None
    patient_name: str | None = None
    phone: str | None = None
    patient_gender: str | None = None
    notes: str | None = None


class BookingEngine:
    def __init__(
        self,
        db: Session,
        branches: BranchRepository,
        rooms: RoomRepository,
        staff: StaffRepository,
        bookings: BookingRepository,
        grid: GridRepository,
    ):
        self.db = db
        self.branches = branches
        self.rooms = rooms
        self.staff = staff
        self.bookings = bookings
        self.grid = grid

    @classmethod
    def for_session(cls, db: Session) -> 'BookingEngine':
        return cls(
            db,
            BranchRepository(db),
            RoomRepository(db),
            StaffRepository(db),
            BookingRepository(db),
            GridRepository(db),
        )

    def create_booking(self, request: BookingRequest) -> Booking:
        start = normalize_time(request.start_time)
        if not is_slot_mark(start):
            raise InvalidInputError(
                'Start time must be on a half-hour mark (HH:00 or HH:30).',
                details={'start_time': format_time(start)},
            )
        end = normalize_time(request.end_time) if request.end_time is not None else default_end_time(start)
        if to_minutes(end) <= to_minutes(start):
            raise InvalidInputError(
                'End time must be after start time.',
                details={'start_time': format_time(start), 'end_time': format_time(end)},
            )

        try:
            with transaction(self.db):
                booking = self._create_locked(request, start, end)
        except IntegrityError as exc:
            logger.warning(
                'Uniqueness guard rejected booking for room %s on %s at %s',
                request.room_id,
                request.date,
                format_time(start),
            )
            raise SlotUnavailableError(
                'Room no longer available at this time - overlapping booking exists',
                details={'room_id': request.room_id, 'date': request.date.isoformat(), 'start_time': format_time(start)},
            ) from exc

        logger.info(
            'Created booking %s (room=%s staff=%s date=%s start=%s)',
            booking.id,
            booking.room_id,
            booking.staff_id,
            booking.date,
            format_time(start),
        )
        return booking

    def _resolve_gender(self, request: BookingRequest) -> str | None:
        if request.patient_id is not None:
            patient = self.branches.get_patient(request.patient_id)
            if patient is None:
                raise NotFoundError('Patient not found', details={'patient_id': request.patient_id})
            return validate_patient_gender(patient.gender)

        if request.patient_gender:
            return validate_patient_gender(request.patient_gender)
        return None

    def _lock_room(self, room_id: int, patient_gender: str | None) -> Room:
        room = self.rooms.lock(room_id)
        if room is None:
            raise NotFoundError('Room not found', details={'room_id': room_id})

        if patient_gender is None:
            raise InvalidInputError('Patient gender is required to assign a room.', details={'room_id': room_id})

        if not room.accepts(patient_gender):
            raise GenderMismatchError(
                'Gender mismatch: Patient gender does not match room gender constraint',
                details={'room_id': room_id, 'room_gender': room.gender, 'patient_gender': patient_gender},
            )
        return room

    def _create_locked(self, request: BookingRequest, start: time, end: time) -> Booking:
        if self.branches.get_branch(request.branch_id) is None:
            raise NotFoundError('Branch not found', details={'branch_id': request.branch_id})
        if self.branches.get_treatment(request.treatment_id) is None:
            raise NotFoundError('Treatment not found', details={'treatment_id': request.treatment_id})

        patient_gender = self._resolve_gender(request)
        marks = session_cells(start)

        room = self._lock_room(request.room_id, patient_gender) if request.room_id is not None else None

        if request.staff_id is not None and self.staff.lock(request.staff_id) is None:
            raise NotFoundError('Staff not found', details={'staff_id': request.staff_id})

        if room is not None:
            slot_details = {'room_id': room.id, 'date': request.date.isoformat(), 'start_time': format_time(start)}
            if self.bookings.has_room_overlap(room.id, request.date, start, end):
                logger.warning('Room %s already booked on %s at %s', room.id, request.date, format_time(start))
                raise SlotUnavailableError(
                    'Room no longer available at this time - overlapping booking exists',
                    details=slot_details,
                )

            for mark in marks:
                cell = self.grid.get_cell(room.id, request.date, mark)
                if cell is not None and cell.status != SlotStatus.AVAILABLE.value:
                    logger.warning(
                        'Grid cell for room %s on %s at %s is %s',
                        room.id,
                        request.date,
                        format_time(mark),
                        cell.status,
                    )
                    raise SlotUnavailableError('Room is not available at this time', details=slot_details)

        if request.staff_id is not None and self.bookings.staff_with_patient(request.staff_id, request.date, start):
            logger.warning(
                'Staff %s is with a patient on %s at %s',
                request.staff_id,
                request.date,
                format_time(start),
            )
            raise StaffBusyError(
                'Staff is currently with a patient at this time',
                details={'staff_id': request.staff_id, 'date': request.date.isoformat(), 'start_time': format_time(start)},
            )

        booking = self.bookings.add(
            Booking(
                branch_id=request.branch_id,
                treatment_id=request.treatment_id,
                room_id=request.room_id,
                staff_id=request.staff_id,
                patient_id=request.patient_id,
                patient_name=request.patient_name,
                phone=request.phone,
                patient_gender=patient_gender,
                date=request.date,
                start_time=start,
                end_time=end,
                status=BookingStatus.PLANNED.value,
                notes=request.notes,
            )
        )

        if room is not None:
            self.grid.mark_booked(request.branch_id, room.id, request.date, marks, booking.id)

        return booking

    def _cancel_locked(self, booking: Booking, reason: str | None) -> int:
        booking.status = BookingStatus.CANCELLED.value
        if reason:
            booking.notes = f'{booking.notes}\n' if booking.notes else ''
            booking.notes += f'Cancelled: {reason}'
        return self.grid.release_booking(booking.id)

    def cancel_booking(self, booking_id: int, reason: str | None = None) -> bool:
        with transaction(self.db):
            booking = self.bookings.lock(booking_id)
            if booking is None:
                return False
            released = self._cancel_locked(booking, reason)

        logger.info('Cancelled booking %s, released %s grid cells', booking_id, released)
        return True

    def update_booking(self, booking_id: int, status: str | None = None, notes: str | None = None) -> Booking:
        if status is not None and status not in BOOKING_STATUSES:
            raise InvalidInputError(
                f'Invalid status. Must be one of: {", ".join(BOOKING_STATUSES)}.',
                details={'status': status},
            )

        with transaction(self.db):
            booking = self.bookings.lock(booking_id)
            if booking is None:
                raise NotFoundError('Booking not found', details={'booking_id': booking_id})

            if notes is not None:
                booking.notes = notes

            if status is not None and status != booking.status:
                if booking.status == BookingStatus.CANCELLED.value:
                    raise InvalidInputError(
                        'A cancelled booking cannot change status.',
                        details={'booking_id': booking_id, 'status': status},
                    )
                if status == BookingStatus.CANCELLED.value:
                    self._cancel_locked(booking, None)
                else:
                    booking.status = status

        logger.info('Updated booking %s (status=%s)', booking_id, booking.status)
        return booking

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise NotFoundError('Booking not found', details={'booking_id': booking_id})
        return booking

    def list_bookings(
        self,
        filters: BookingFilters,
        page: int = 1,
        per_page: int = 15,
    ) -> tuple[list[Booking], int]:
        return self.bookings.search(filters, page=page, per_page=per_page)
