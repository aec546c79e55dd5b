from datetime import date, time

from backend.core.timeslots import DEFAULT_CLOSE_TIME, DEFAULT_OPEN_TIME, parse_time, weekday_name
from backend.models.branch import Branch


def opening_hours_for(branch: Branch, day: date) -> tuple[time, time] | None:
    """Open and close times of a branch on ``day``, or None when it is closed that weekday."""
    hours = (branch.opening_hours or {}).get(weekday_name(day))
    if hours is None:
        return None

    open_time = parse_time(hours.get('open') or DEFAULT_OPEN_TIME)
    close_time = parse_time(hours.get('close') or DEFAULT_CLOSE_TIME)
    return open_time, close_time
