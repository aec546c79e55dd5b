import logging
from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import Operator, get_current_operator
from backend.core import config
from backend.core.exceptions import CONFLICT_ERRORS, SchedulingError
from backend.database import ensure_scheduling_schema, get_db
from backend.models.booking import BOOKING_STATUSES, Booking
from backend.models.patient import PATIENT_GENDERS
from backend.repositories.booking_repository import BookingFilters
from backend.repositories.branch_repository import BranchRepository
from backend.services.booking_engine import BookingEngine, BookingRequest
from backend.services.compatibility import CompatibilityResolver
from backend.services.slot_search import SlotSearchEngine

router = APIRouter(tags=['bookings'])

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 2000
MAX_PER_PAGE = 100
DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def _normalize_gender(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().capitalize()
    if normalized not in PATIENT_GENDERS:
        raise ValueError('Patient gender must be Male or Female.')
    return normalized


def _normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > MAX_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')
    return normalized


def _reject_past_date(value: date | None) -> date | None:
    if value is not None and value < date.today():
        raise ValueError('Date must be today or later.')
    return value


class FindSlotRequest(BaseModel):
    branch_id: int
    treatment_id: int
    patient_gender: str
    preferred_date: date | None = None
    preferred_time: time | None = None

    @field_validator('patient_gender')
    @classmethod
    def validate_patient_gender(cls, value: str) -> str:
        return _normalize_gender(value)

    @field_validator('preferred_date')
    @classmethod
    def validate_preferred_date(cls, value: date | None) -> date | None:
        return _reject_past_date(value)


class CreateBookingRequest(BaseModel):
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

    @field_validator('date')
    @classmethod
    def validate_date(cls, value: date) -> date:
        return _reject_past_date(value)

    @field_validator('patient_gender')
    @classmethod
    def validate_patient_gender(cls, value: str | None) -> str | None:
        return _normalize_gender(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)

    @model_validator(mode='after')
    def require_intake_fields(self) -> 'CreateBookingRequest':
        if self.patient_id is None:
            if not (self.phone or '').strip():
                raise ValueError('Phone is required when no patient_id is given.')
            if self.patient_gender is None:
                raise ValueError('Patient gender is required when no patient_id is given.')
        return self

    def to_booking_request(self) -> BookingRequest:
        return BookingRequest(**self.model_dump())


class UpdateBookingRequest(BaseModel):
    status: str | None = None
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is not None and value not in BOOKING_STATUSES:
            raise ValueError(f'Status must be one of: {", ".join(BOOKING_STATUSES)}.')
        return value

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class CancelBookingRequest(BaseModel):
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class ResourceRef(BaseModel):
    id: int
    name: str


class SlotResponse(BaseModel):
    date: date
    start_time: str
    end_time: str
    staff: ResourceRef
    room: ResourceRef
    treatment: ResourceRef


class StaffResponse(BaseModel):
    id: int
    name: str
    availability: dict

    class Config:
        from_attributes = True


class BookingResponse(BaseModel):
    id: int
    branch_id: int
    treatment_id: int
    room_id: int | None = None
    staff_id: int | None = None
    patient_id: int | None = None
    patient_name: str | None = None
    phone: str | None = None
    patient_gender: str | None = None
    date: date
    start_time: time
    end_time: time | None = None
    status: str
    notes: str | None = None

    class Config:
        from_attributes = True


class BookingPageResponse(BaseModel):
    page: int
    per_page: int
    total: int
    items: list[BookingResponse]


class CancelBookingResponse(BaseModel):
    id: int
    status: str


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.exception('Database error while handling booking request', exc_info=exc)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE)


def ensure_branch_access(operator: Operator, branch_id: int) -> None:
    if operator.branch_ids is not None and branch_id not in operator.branch_ids:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='You do not have access to this branch.',
        )


def suggest_next_slot(data: CreateBookingRequest, db: Session) -> dict | None:
    patient_gender = data.patient_gender
    if data.patient_id is not None:
        patient = BranchRepository(db).get_patient(data.patient_id)
        patient_gender = patient.gender if patient is not None else patient_gender
    if patient_gender is None:
        return None

    try:
        slot = SlotSearchEngine.for_session(db).find_slot(
            data.branch_id,
            data.treatment_id,
            patient_gender,
            preferred_date=data.date,
            preferred_time=data.start_time,
        )
    except SchedulingError as exc:
        logger.info('No alternative slot to suggest: %s', exc.message)
        return None

    return slot.to_dict() if slot is not None else None


@router.get('/available-staff', response_model=list[StaffResponse])
def get_available_staff(
    branch_id: int = Query(...),
    treatment_id: int = Query(...),
    operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    ensure_branch_access(operator, branch_id)
    ensure_database_ready()

    try:
        return CompatibilityResolver.for_session(db).certified_staff(branch_id, treatment_id)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/find-available-slot', response_model=SlotResponse)
def find_available_slot(
    data: FindSlotRequest,
    operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    ensure_branch_access(operator, data.branch_id)
    ensure_database_ready()

    try:
        slot = SlotSearchEngine.for_session(db).find_slot(
            data.branch_id,
            data.treatment_id,
            data.patient_gender,
            preferred_date=data.preferred_date,
            preferred_time=data.preferred_time,
        )
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    if slot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'No available slots found in the next {config.SEARCH_HORIZON_DAYS} days',
        )

    return slot.to_dict()


@router.get('', response_model=BookingPageResponse)
def list_bookings(
    branch_id: int | None = Query(default=None),
    staff_id: int | None = Query(default=None),
    room_id: int | None = Query(default=None),
    patient_id: int | None = Query(default=None),
    booking_date: date | None = Query(default=None, alias='date'),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    booking_status: str | None = Query(default=None, alias='status'),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=15, ge=1, le=MAX_PER_PAGE),
    operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    if branch_id is not None:
        ensure_branch_access(operator, branch_id)
    elif operator.branch_ids is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='branch_id is required for branch-scoped operators.',
        )
    ensure_database_ready()

    filters = BookingFilters(
        branch_id=branch_id,
        staff_id=staff_id,
        room_id=room_id,
        patient_id=patient_id,
        day=booking_date,
        date_from=date_from,
        date_to=date_to,
        status=booking_status,
    )

    try:
        items, total = BookingEngine.for_session(db).list_bookings(filters, page=page, per_page=per_page)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return BookingPageResponse(
        page=page,
        per_page=per_page,
        total=total,
        items=[BookingResponse.model_validate(booking) for booking in items],
    )


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    ensure_branch_access(operator, data.branch_id)
    ensure_database_ready()

    try:
        booking = BookingEngine.for_session(db).create_booking(data.to_booking_request())
    except CONFLICT_ERRORS as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={**exc.to_dict(), 'next_available_slot': suggest_next_slot(data, db)},
        ) from exc
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return BookingResponse.model_validate(booking)


def _load_booking(engine: BookingEngine, booking_id: int, operator: Operator) -> Booking:
    booking = engine.get_booking(booking_id)
    ensure_branch_access(operator, booking.branch_id)
    return booking


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: int,
    operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        booking = _load_booking(BookingEngine.for_session(db), booking_id, operator)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return BookingResponse.model_validate(booking)


@router.put('/{booking_id}', response_model=BookingResponse)
def update_booking(
    booking_id: int,
    data: UpdateBookingRequest,
    operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        engine = BookingEngine.for_session(db)
        _load_booking(engine, booking_id, operator)
        booking = engine.update_booking(booking_id, status=data.status, notes=data.notes)
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return BookingResponse.model_validate(booking)


@router.put('/{booking_id}/cancel', response_model=CancelBookingResponse)
def cancel_booking(
    booking_id: int,
    data: CancelBookingRequest | None = None,
    operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        engine = BookingEngine.for_session(db)
        existing = engine.bookings.get(booking_id)
        if existing is not None:
            ensure_branch_access(operator, existing.branch_id)
        cancelled = engine.cancel_booking(booking_id, data.reason if data is not None else None)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    if not cancelled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Booking not found',
        )

    return CancelBookingResponse(id=booking_id, status='Cancelled')
