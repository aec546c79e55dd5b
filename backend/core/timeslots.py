"""Time-of-day arithmetic shared by the grid, the capacity rules and the search."""

from datetime import date, datetime, time

from backend.core.exceptions import InvalidInputError

SLOT_MINUTES = 30
SESSION_MINUTES = 60
WITH_PATIENT_MINUTES = 30
SLOTS_PER_DAY = 24 * 60 // SLOT_MINUTES

DEFAULT_OPEN_TIME = time(6, 0)
DEFAULT_CLOSE_TIME = time(20, 0)

WEEKDAY_NAMES = (
    'monday',
    'tuesday',
    'wednesday',
    'thursday',
    'friday',
    'saturday',
    'sunday',
)


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def normalize_time(value: time) -> time:
    """Strip seconds and microseconds so times compare as HH:MM."""
    return value.replace(second=0, microsecond=0, tzinfo=None)


def parse_time(value: str | time) -> time:
    """Accept ``HH:MM`` or ``HH:MM:SS`` strings and return a normalized time."""
    if isinstance(value, time):
        return normalize_time(value)

    if not isinstance(value, str):
        raise InvalidInputError(f'Invalid time value: {value!r}. Expected HH:MM.')

    text = value.strip()
    for fmt in ('%H:%M', '%H:%M:%S'):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue

    raise InvalidInputError(f'Invalid time value: {value!r}. Expected HH:MM.')


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return date.fromisoformat((value or '').strip())
    except ValueError as exc:
        raise InvalidInputError(f'Invalid date value: {value!r}. Expected YYYY-MM-DD.') from exc


def format_time(value: time) -> str:
    return value.strftime('%H:%M')


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < 24 * 60:
        raise InvalidInputError(f'{minutes} minutes is outside a single day.')
    return time(minutes // 60, minutes % 60)


def add_minutes(value: time, minutes: int) -> time:
    """Shift a time of day, failing if the result leaves the day."""
    return from_minutes(to_minutes(value) + minutes)


def minutes_after(value: time, minutes: int) -> int:
    """Like ``add_minutes`` but returns minutes since midnight, allowing 24:00 and beyond."""
    return to_minutes(value) + minutes


def ceil_to_slot(value: time) -> int:
    """Round up to the next half-hour mark; returns minutes since midnight."""
    total = to_minutes(value)
    if value.second or value.microsecond:
        total += 1
    remainder = total % SLOT_MINUTES
    if remainder:
        total += SLOT_MINUTES - remainder
    return total


def is_slot_mark(value: time) -> bool:
    """True for the 48 grid marks (minute 0 or 30, no seconds)."""
    return not (value.second or value.microsecond) and to_minutes(value) % SLOT_MINUTES == 0


def half_hour_marks(start: time | None = None, end: time | None = None) -> list[time]:
    """All half-hour marks in ``[start, end)``; the whole day when no bounds are given."""
    start_minutes = to_minutes(start) if start is not None else 0
    end_minutes = to_minutes(end) if end is not None else 24 * 60
    first = start_minutes + (-start_minutes % SLOT_MINUTES)
    return [from_minutes(minutes) for minutes in range(first, end_minutes, SLOT_MINUTES)]


def session_cells(start: time) -> tuple[time, time]:
    """The two grid marks a one-hour session occupies."""
    start = normalize_time(start)
    return start, add_minutes(start, SLOT_MINUTES)


def default_end_time(start: time) -> time:
    return add_minutes(normalize_time(start), SESSION_MINUTES)


def intervals_overlap(
    existing_start: time,
    existing_end: time | None,
    new_start: time,
    new_end: time | None,
) -> bool:
    """existing_start < new_end AND existing_end > new_start, null ends meaning start + 1h."""
    existing_end_minutes = (
        to_minutes(existing_end) if existing_end is not None else minutes_after(existing_start, SESSION_MINUTES)
    )
    new_end_minutes = to_minutes(new_end) if new_end is not None else minutes_after(new_start, SESSION_MINUTES)
    return to_minutes(existing_start) < new_end_minutes and existing_end_minutes > to_minutes(new_start)


def is_with_patient(session_start: time, at: time) -> bool:
    """A staff member is busy only during the first half hour of a session."""
    at_minutes = to_minutes(normalize_time(at))
    start_minutes = to_minutes(normalize_time(session_start))
    return start_minutes <= at_minutes < start_minutes + WITH_PATIENT_MINUTES
