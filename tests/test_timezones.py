"""Tests for tournament timezone conversions."""
from datetime import UTC, datetime

import pytest
from padel_live.services.timezones import (
    InvalidPlannedTime, UnknownTimezone, combine_date_and_time, format_for_display,
    parse_planned_time, utc_from_zoned, zoned_components,
)


@pytest.mark.parametrize('tz_name,fields', [
    ('UTC', (2025, 6, 1, 0, 0)),
    ('Asia/Tokyo', (2025, 3, 15, 9, 30)),
    ('America/Argentina/Buenos_Aires', (2025, 10, 20, 10, 0)),
    ('Europe/Madrid', (2025, 7, 1, 18, 45)),
    ('America/Santiago', (2025, 12, 5, 21, 0)),
    ('Pacific/Kiritimati', (2025, 5, 1, 8, 0)),
])
def test_zoned_round_trip(tz_name, fields):
    instant = utc_from_zoned(*fields, tz_name)
    comps = zoned_components(instant, tz_name)
    assert (comps.year, comps.month, comps.day, comps.hour, comps.minute) == fields
    assert comps.second == 0


def test_utc_from_zoned_known_offsets():
    assert utc_from_zoned(2025, 1, 10, 9, 0, 'Asia/Tokyo') == datetime(2025, 1, 10, 0, 0)
    assert utc_from_zoned(2025, 10, 20, 10, 0, 'America/Argentina/Buenos_Aires') == datetime(2025, 10, 20, 13, 0)


def test_utc_from_zoned_crosses_date_line():
    # UTC+14: 08:00 local is the previous UTC day.
    assert utc_from_zoned(2025, 5, 1, 8, 0, 'Pacific/Kiritimati') == datetime(2025, 4, 30, 18, 0)


def test_zoned_components_accepts_aware_instants():
    aware = datetime(2025, 1, 10, 0, 0, tzinfo=UTC)
    comps = zoned_components(aware, 'Asia/Tokyo')
    assert (comps.day, comps.hour) == (10, 9)


def test_combine_ignores_time_of_day():
    tz = 'America/Santiago'
    late = combine_date_and_time(datetime(2025, 10, 20, 23, 59), '09:00', tz)
    midnight = combine_date_and_time(datetime(2025, 10, 20, 0, 0), '09:00', tz)
    assert late == midnight
    comps = zoned_components(late, tz)
    assert (comps.year, comps.month, comps.day, comps.hour, comps.minute) == (2025, 10, 20, 9, 0)


def test_combine_uses_utc_date_of_aware_day():
    tz = 'Asia/Tokyo'
    aware = datetime(2025, 10, 20, 23, 0, tzinfo=UTC)
    assert combine_date_and_time(aware, '14:30', tz) == combine_date_and_time(datetime(2025, 10, 20), '14:30', tz)


@pytest.mark.parametrize('raw', ['25:00', '10:60', '9h', '', None, '10:5', 'ten'])
def test_parse_planned_time_rejects_malformed(raw):
    with pytest.raises(InvalidPlannedTime):
        parse_planned_time(raw)


def test_parse_planned_time_accepts_single_digit_hour():
    parsed = parse_planned_time(' 9:05 ')
    assert (parsed.hour, parsed.minute) == (9, 5)


@pytest.mark.parametrize('tz_name', ['Mars/Olympus_Mons', 'America', 'Etc'])
def test_unknown_timezone(tz_name):
    with pytest.raises(UnknownTimezone):
        zoned_components(datetime(2025, 1, 1), tz_name)
    assert issubclass(UnknownTimezone, ValueError)


def test_format_for_display():
    instant = datetime(2025, 1, 10, 0, 0)
    assert format_for_display(instant, 'Asia/Tokyo') == '10/01/2025 09:00:00'
    assert format_for_display(instant, 'Asia/Tokyo', include_time=False) == '10/01/2025'
