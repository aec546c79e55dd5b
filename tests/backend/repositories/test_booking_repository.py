from datetime import date, time

from backend.models.availability import SlotStatus
from backend.models.booking import Booking, BookingStatus
from backend.repositories.booking_repository import BookingRepository
from backend.repositories.grid_repository import GridRepository

MONDAY = date(2026, 1, 5)


def _add(db, scenario, start: time, end: time | None = None, booking_status=BookingStatus.PLANNED) -> Booking:
    booking = Booking(
        branch_id=scenario.branch.id,
        treatment_id=scenario.treatment.id,
        room_id=scenario.r1.id,
        staff_id=scenario.s1.id,
        date=MONDAY,
        start_time=start,
        end_time=end,
        status=booking_status.value,
    )
    db.add(booking)
    db.commit()
    return booking


def test_room_overlaps_use_half_open_intervals(db, scenario) -> None:
    existing = _add(db, scenario, time(9, 0), time(10, 0))
    repository = BookingRepository(db)

    assert repository.room_overlaps(scenario.r1.id, MONDAY, time(9, 30), time(10, 30)) == [existing]
    assert repository.has_room_overlap(scenario.r1.id, MONDAY, time(10, 0), time(11, 0)) is False
    assert repository.has_room_overlap(scenario.r1.id, MONDAY, time(9, 0), None) is True
    assert repository.room_overlaps(scenario.r1.id, MONDAY, time(9, 0), None, exclude_booking_id=existing.id) == []


def test_missing_end_time_counts_as_one_hour(db, scenario) -> None:
    _add(db, scenario, time(9, 0))
    repository = BookingRepository(db)

    assert repository.has_room_overlap(scenario.r1.id, MONDAY, time(9, 45), time(10, 45)) is True
    assert repository.has_room_overlap(scenario.r1.id, MONDAY, time(10, 0), time(11, 0)) is False


def test_cancelled_bookings_are_ignored(db, scenario) -> None:
    _add(db, scenario, time(9, 0), time(10, 0), booking_status=BookingStatus.CANCELLED)
    repository = BookingRepository(db)

    assert repository.has_room_overlap(scenario.r1.id, MONDAY, time(9, 0), time(10, 0)) is False
    assert repository.staff_session_starts(scenario.s1.id, MONDAY) == []


def test_release_booking_frees_only_its_cells(db, scenario) -> None:
    booking = _add(db, scenario, time(9, 0), time(10, 0))
    grid = GridRepository(db)
    grid.mark_booked(scenario.branch.id, scenario.r1.id, MONDAY, (time(9, 0), time(9, 30)), booking.id)
    grid.put(scenario.branch.id, scenario.r1.id, MONDAY, time(10, 0), SlotStatus.UNAVAILABLE)
    db.commit()

    assert grid.release_booking(booking.id) == 2
    db.commit()

    assert grid.cells_for_booking(booking.id) == []
    assert grid.get_cell(scenario.r1.id, MONDAY, time(9, 30)).status == SlotStatus.AVAILABLE.value
    assert grid.get_cell(scenario.r1.id, MONDAY, time(10, 0)).status == SlotStatus.UNAVAILABLE.value
