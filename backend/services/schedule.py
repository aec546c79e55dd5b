"""
Staff availability schedules.

The stored JSON mixes two kinds of keys: lowercase weekday names hold the
recurring start times, ISO dates hold one-day overrides. ``StaffSchedule``
keeps them apart. An override that is present but empty means the staff
member is off for the whole day; an absent override falls back to the
weekday default.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, time

from backend.core.exceptions import InvalidInputError
from backend.core.timeslots import WEEKDAY_NAMES, parse_time, weekday_name

logger = logging.getLogger(__name__)

ISO_DATE_KEY = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def _parse_times(values, key: str) -> frozenset[time]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise InvalidInputError(f'Availability for {key!r} must be a list of HH:MM times.')
    return frozenset(parse_time(value) for value in values)


@dataclass(frozen=True)
class StaffSchedule:
    recurring: dict[str, frozenset[time]] = field(default_factory=dict)
    overrides: dict[date, frozenset[time]] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: dict | None) -> 'StaffSchedule':
        recurring: dict[str, frozenset[time]] = {}
        overrides: dict[date, frozenset[time]] = {}

        if raw is not None and not isinstance(raw, dict):
            raise InvalidInputError('Availability must be an object keyed by weekday or ISO date.')

        for key, values in (raw or {}).items():
            normalized_key = str(key).strip().lower()
            if normalized_key in WEEKDAY_NAMES:
                recurring[normalized_key] = _parse_times(values, key)
            elif ISO_DATE_KEY.match(normalized_key):
                try:
                    override_date = date.fromisoformat(normalized_key)
                except ValueError as exc:
                    raise InvalidInputError(f'Invalid availability date key: {key!r}.') from exc
                overrides[override_date] = _parse_times(values, key)
            else:
                logger.warning('Ignoring unrecognized availability key %r', key)

        return cls(recurring=recurring, overrides=overrides)

    def times_for(self, day: date) -> frozenset[time]:
        if day in self.overrides:
            return self.overrides[day]
        return self.recurring.get(weekday_name(day), frozenset())

    def is_schedulable(self, day: date, at: time) -> bool:
        return parse_time(at) in self.times_for(day)


def strip_overrides_before(raw: dict | None, cutoff: date) -> dict | None:
    """Drop ISO-date keys older than ``cutoff``; returns None when nothing changed.

    Weekday keys and anything unparseable are left exactly as stored.
    """
    if not isinstance(raw, dict):
        return None

    kept = {}
    for key, values in raw.items():
        if isinstance(key, str) and ISO_DATE_KEY.match(key):
            try:
                if date.fromisoformat(key) < cutoff:
                    continue
            except ValueError:
                pass
        kept[key] = values

    return kept if len(kept) != len(raw) else None
