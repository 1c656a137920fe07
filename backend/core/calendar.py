"""Weekday and wall-clock helpers shared by schedules, slots and bookings."""

import re
from datetime import date, datetime, time, timezone
from enum import IntEnum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from backend.core import config

WALL_CLOCK_PATTERN = re.compile(r'^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$')


class Weekday(IntEnum):
    """Canonical weekday, numbered like ``date.weekday()`` (Monday is 0)."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, day: date) -> 'Weekday':
        return cls(day.weekday())

    @classmethod
    def parse(cls, value: 'str | int | Weekday') -> 'Weekday':
        """Convert an API weekday into the canonical form.

        Accepts a day name (any case) or the legacy integer form where
        0 is Sunday and 6 is Saturday.
        """
        if isinstance(value, cls):
            return value

        if isinstance(value, bool):
            raise ValueError('Invalid day of week.')

        if isinstance(value, int):
            if not 0 <= value <= 6:
                raise ValueError('dayOfWeek must be between 0 (Sunday) and 6 (Saturday).')
            return cls((value - 1) % 7)

        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized.isdigit():
                return cls.parse(int(normalized))
            try:
                return cls[normalized]
            except KeyError as exc:
                raise ValueError('Invalid day of week.') from exc

        raise ValueError('Invalid day of week.')

    @property
    def display_name(self) -> str:
        return self.name.title()


def parse_wall_clock(value: str) -> time:
    match = WALL_CLOCK_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValueError('Time must be in HH:MM format.')
    return time(int(match.group(1)), int(match.group(2)))


def normalize_wall_clock(value: str) -> str:
    return format_wall_clock(parse_wall_clock(value))


def format_wall_clock(value: time | datetime) -> str:
    return value.strftime('%H:%M')


def clinic_timezone() -> ZoneInfo:
    try:
        return ZoneInfo(config.CLINIC_TIMEZONE)
    except ZoneInfoNotFoundError as exc:
        raise RuntimeError(f'Unknown CLINIC_TIMEZONE {config.CLINIC_TIMEZONE!r}.') from exc


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Attach the clinic zone to naive datetimes; aware ones pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz or clinic_timezone())
    return value


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time(0, 0), tzinfo=tz)
    end = datetime.combine(date.fromordinal(day.toordinal() + 1), time(0, 0), tzinfo=tz)
    return start, end
