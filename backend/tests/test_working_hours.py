from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo
import pytest

from portal.services.timer.working_hours import (
    WORKDAY_SECONDS,
    is_working_moment,
    working_seconds_between,
)

IST = ZoneInfo('Asia/Kolkata')


def ist(day, hour=0, minute=0, second=0, microsecond=0):
    # October 2026: the 12th is a Monday, the 17th a Saturday, the 18th a Sunday
    return datetime(2026, 10, day, hour, minute, second, microsecond, tzinfo=IST)


@pytest.mark.parametrize('instant, expected', [
    (ist(12, 8, 44, 59), False),
    (ist(12, 8, 45), True),
    (ist(12, 12, 0), True),
    (ist(12, 16, 19, 59), True),
    (ist(12, 16, 20), False),
    (ist(17, 10, 0), True),
    (ist(18, 10, 0), False),
    (ist(12, 23, 0), False),
])
def test_is_working_moment(instant, expected):
    assert is_working_moment(instant, 'Asia/Kolkata') is expected


def test_is_working_moment_converts_to_institution_zone():
    # 03:15 UTC is 08:45 in India
    assert is_working_moment(datetime(2026, 10, 12, 3, 15, tzinfo=timezone.utc), 'Asia/Kolkata')
    assert not is_working_moment(datetime(2026, 10, 12, 3, 14, tzinfo=timezone.utc), 'Asia/Kolkata')
    # Naive datetimes are read as UTC
    assert is_working_moment(datetime(2026, 10, 12, 3, 15), 'Asia/Kolkata')


def test_full_weekday_contributes_workday_seconds():
    assert WORKDAY_SECONDS == 27300
    assert working_seconds_between(ist(12), ist(13)) == 27300
    assert working_seconds_between(ist(12, 6), ist(12, 18)) == 27300


def test_sunday_contributes_nothing():
    assert working_seconds_between(ist(18), ist(19)) == 0
    assert working_seconds_between(ist(17, 20), ist(19, 8, 45)) == 0


def test_empty_or_reversed_interval_is_zero():
    assert working_seconds_between(ist(12, 10), ist(12, 10)) == 0
    assert working_seconds_between(ist(12, 11), ist(12, 10)) == 0


def test_partial_days_and_weekend_crossing():
    assert working_seconds_between(ist(12, 9), ist(12, 9, 30)) == 1800
    # 16:00-16:20 Monday only; the night contributes nothing
    assert working_seconds_between(ist(12, 16), ist(13, 8, 45)) == 1200
    # Saturday 16:00-16:20 plus Monday 08:45-09:00
    assert working_seconds_between(ist(17, 16), ist(19, 9)) == 1200 + 900


def test_full_week_is_six_workdays():
    assert working_seconds_between(ist(12), ist(19)) == 6 * 27300


def test_sub_second_remainders_are_floored():
    assert working_seconds_between(ist(12, 9), ist(12, 9, 0, 1, 999999)) == 1
    assert working_seconds_between(ist(12, 9, 0, 0, 500000), ist(12, 9, 0, 1, 400000)) == 0


def test_monotonic_in_end():
    start = ist(12, 7, 13)
    previous = 0
    end = start
    while end < ist(20):
        end += timedelta(minutes=17)
        current = working_seconds_between(start, end)
        assert current >= previous
        previous = current


def test_mixed_zone_inputs_agree():
    start_utc = ist(12, 9).astimezone(timezone.utc)
    end_utc = ist(13, 9).astimezone(timezone.utc)
    assert working_seconds_between(start_utc, end_utc) == working_seconds_between(ist(12, 9), ist(13, 9))
    assert working_seconds_between(ist(12, 9), ist(13, 9)) == 27300


def test_window_follows_configured_zone():
    start = datetime(2026, 10, 12, 8, 0, tzinfo=timezone.utc)
    end = datetime(2026, 10, 12, 9, 0, tzinfo=timezone.utc)
    assert working_seconds_between(start, end, 'UTC') == 15 * 60
