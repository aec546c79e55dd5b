from datetime import date, datetime, time

import pytest

from backend.core.exceptions import BranchClosedError, InvalidInputError, NoCompatibleResourceError
from backend.models.availability import SlotStatus
from backend.models.booking import Booking
from backend.repositories.grid_repository import GridRepository
from backend.services.grid_maintenance import initialize_grid
from backend.services.slot_search import SlotSearchEngine

MONDAY = date(2026, 1, 5)
SUNDAY = date(2026, 1, 11)
NEXT_MONDAY = date(2026, 1, 12)


def _engine(db, clock_at: datetime = datetime(2026, 1, 5, 7, 0), **kwargs) -> SlotSearchEngine:
    return SlotSearchEngine.for_session(db, clock=lambda: clock_at, **kwargs)


def _mark(db, room, day: date, mark: time, status: SlotStatus) -> None:
    GridRepository(db).put(room.branch_id, room.id, day, mark, status)
    db.commit()


def test_finds_first_slot_with_free_room_and_staff(db, clinic, scenario) -> None:
    clinic.room(scenario.branch, name='R2', gender='Male', treatments=[scenario.treatment])

    slot = _engine(db).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Female',
        preferred_date=MONDAY,
        preferred_time=time(9, 0),
    )

    assert slot is not None
    assert slot.date == MONDAY
    assert slot.start_time == time(9, 0)
    assert slot.end_time == time(10, 0)
    assert slot.room.id == scenario.r1.id
    assert slot.staff.id == scenario.s1.id
    assert slot.to_dict() == {
        'date': '2026-01-05',
        'start_time': '09:00',
        'end_time': '10:00',
        'staff': {'id': scenario.s1.id, 'name': 'S1'},
        'room': {'id': scenario.r1.id, 'name': 'R1'},
        'treatment': {'id': scenario.treatment.id, 'name': 'Physiotherapy'},
    }


def test_defaults_to_now_and_rounds_up_to_next_half_hour(db, scenario) -> None:
    slot = _engine(db, clock_at=datetime(2026, 1, 5, 8, 47, 12)).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Male',
    )

    assert (slot.date, slot.start_time) == (MONDAY, time(9, 0))


def test_skips_closed_days_and_restarts_at_opening_time(db, clinic, scenario) -> None:
    slot = _engine(db).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Female',
        preferred_date=SUNDAY,
        preferred_time=time(15, 0),
    )

    assert (slot.date, slot.start_time) == (NEXT_MONDAY, time(9, 0))


def test_moves_to_following_week_when_preferred_time_is_past_availability(db, scenario) -> None:
    slot = _engine(db).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Female',
        preferred_date=MONDAY,
        preferred_time=time(9, 30),
    )

    assert (slot.date, slot.start_time) == (NEXT_MONDAY, time(9, 0))


def test_returns_none_when_horizon_is_exhausted(db, scenario) -> None:
    slot = _engine(db, horizon_days=7).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Female',
        preferred_date=MONDAY,
        preferred_time=time(10, 0),
    )

    assert slot is None


def test_session_must_end_before_closing(db, clinic) -> None:
    branch = clinic.branch()
    treatment = clinic.treatment()
    clinic.room(branch, treatments=[treatment])
    clinic.staff(branch, availability={'monday': ['19:30']}, treatments=[treatment])

    slot = _engine(db, horizon_days=7).find_slot(branch.id, treatment.id, 'Male', preferred_date=MONDAY)

    assert slot is None


def test_booked_grid_cell_blocks_the_room(db, scenario) -> None:
    _mark(db, scenario.r1, MONDAY, time(9, 0), SlotStatus.AVAILABLE)
    _mark(db, scenario.r1, MONDAY, time(9, 30), SlotStatus.BOOKED)

    slot = _engine(db).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Female',
        preferred_date=MONDAY,
        preferred_time=time(9, 0),
    )

    assert slot.date == NEXT_MONDAY


def test_unavailable_grid_cell_is_never_selected(db, scenario) -> None:
    _mark(db, scenario.r1, MONDAY, time(9, 0), SlotStatus.UNAVAILABLE)
    _mark(db, scenario.r1, MONDAY, time(9, 30), SlotStatus.AVAILABLE)

    slot = _engine(db).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Female',
        preferred_date=MONDAY,
        preferred_time=time(9, 0),
    )

    assert slot.date == NEXT_MONDAY


def test_unmaterialized_room_falls_back_to_booking_overlap(db, clinic, scenario) -> None:
    r2 = clinic.room(scenario.branch, name='R2', gender='Female', treatments=[scenario.treatment])
    db.add(Booking(
        branch_id=scenario.branch.id,
        treatment_id=scenario.treatment.id,
        room_id=scenario.r1.id,
        date=MONDAY,
        start_time=time(8, 30),
        end_time=time(9, 30),
        status='Planned',
    ))
    db.commit()

    slot = _engine(db).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Female',
        preferred_date=MONDAY,
        preferred_time=time(9, 0),
    )

    assert (slot.date, slot.start_time, slot.room.id) == (MONDAY, time(9, 0), r2.id)


def test_closed_branch_and_invalid_gender_are_rejected(db, clinic, scenario) -> None:
    closed = clinic.branch(name='Closed', is_open=False)

    with pytest.raises(BranchClosedError):
        _engine(db).find_slot(closed.id, scenario.treatment.id, 'Male')

    with pytest.raises(InvalidInputError):
        _engine(db).find_slot(scenario.branch.id, scenario.treatment.id, 'Unisex')


def test_no_compatible_room_aborts_before_scanning(db, clinic) -> None:
    branch = clinic.branch()
    treatment = clinic.treatment()
    clinic.room(branch, gender='Male', treatments=[treatment])
    clinic.staff(branch, availability={'monday': ['09:00']}, treatments=[treatment])

    with pytest.raises(NoCompatibleResourceError):
        _engine(db).find_slot(branch.id, treatment.id, 'Female', preferred_date=MONDAY)


def test_scan_starts_at_first_grid_mark_after_opening(db, clinic) -> None:
    branch = clinic.branch(opening_hours={'monday': {'open': '08:15', 'close': '12:00'}})
    treatment = clinic.treatment()
    room = clinic.room(branch, treatments=[treatment])
    clinic.staff(branch, availability={'monday': ['08:30', '09:00']}, treatments=[treatment])
    initialize_grid(db, days=8, today=MONDAY)

    from_cursor = _engine(db).find_slot(branch.id, treatment.id, 'Male', preferred_date=MONDAY)
    after_closed_day = _engine(db).find_slot(branch.id, treatment.id, 'Male', preferred_date=SUNDAY)

    assert (from_cursor.date, from_cursor.start_time, from_cursor.room.id) == (MONDAY, time(8, 30), room.id)
    assert (after_closed_day.date, after_closed_day.start_time) == (NEXT_MONDAY, time(8, 30))


def test_malformed_stored_schedule_does_not_abort_search(db, clinic, scenario) -> None:
    clinic.staff(scenario.branch, name='S2', availability={'monday': [900, '9am']}, treatments=[scenario.treatment])
    clinic.staff(scenario.branch, name='S3', availability=['09:00'], treatments=[scenario.treatment])

    slot = _engine(db).find_slot(
        scenario.branch.id,
        scenario.treatment.id,
        'Female',
        preferred_date=MONDAY,
        preferred_time=time(9, 0),
    )

    assert slot.staff.id == scenario.s1.id
