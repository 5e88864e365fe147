"""Conversions between stored UTC instants and tournament wall-clock time.

Stored timestamps are naive UTC. Every function here accepts naive values as
UTC (aware values are converted) and returns naive UTC, so results compare
directly with database columns.
"""
import re
from collections import namedtuple
from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

ZonedComponents = namedtuple('ZonedComponents', 'year month day hour minute second')

_PLANNED_TIME_RE = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*$')


class UnknownTimezone(ValueError):
    pass


class InvalidPlannedTime(ValueError):
    pass


def get_zone(tz_name):
    try:
        return ZoneInfo(str(tz_name))
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        # Directory names such as "America" surface as OSError.
        raise UnknownTimezone(f'Unknown timezone: {tz_name!r}') from exc


def _as_aware_utc(instant):
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def zoned_components(instant, tz_name):
    """Decompose a UTC instant into wall-clock fields in ``tz_name`` (1-based month)."""
    local = _as_aware_utc(instant).astimezone(get_zone(tz_name))
    return ZonedComponents(local.year, local.month, local.day,
                           local.hour, local.minute, local.second)


def utc_from_zoned(year, month, day, hour, minute, tz_name):
    """Return the naive UTC instant for a wall-clock time in ``tz_name``.

    Uses the zone offset observed at noon UTC of the requested date, so a
    time that falls inside a DST transition can be off by the DST delta.
    """
    guess = datetime(year, month, day, 12, 0)
    seen = zoned_components(guess, tz_name)
    offset = datetime(*seen) - guess
    return datetime(year, month, day, hour, minute) - offset


def parse_planned_time(raw):
    match = _PLANNED_TIME_RE.match(str(raw or ''))
    if not match:
        raise InvalidPlannedTime(f'Invalid planned time: {raw!r}')
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidPlannedTime(f'Invalid planned time: {raw!r}')
    return time(hour, minute)


def combine_date_and_time(day_instant, planned_time, tz_name):
    """Combine the calendar date of ``day_instant`` with a local "HH:MM".

    Only the UTC date of ``day_instant`` is used; any time of day it carries
    is ignored.
    """
    parsed = parse_planned_time(planned_time)
    day = _as_aware_utc(day_instant).date()
    return utc_from_zoned(day.year, day.month, day.day, parsed.hour, parsed.minute, tz_name)


def format_for_display(instant, tz_name, include_time=True):
    local = _as_aware_utc(instant).astimezone(get_zone(tz_name))
    if include_time:
        return local.strftime('%d/%m/%Y %H:%M:%S')
    return local.strftime('%d/%m/%Y')