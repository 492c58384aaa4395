# backend/tests/unit/test_timezone_utils.py
from datetime import date, datetime, time

import pytest
import pytz

from tutorsched.core.exceptions import ValidationException
from tutorsched.core.timezone_utils import (
    epoch_millis,
    get_zone,
    local_day_bounds_utc,
    to_local,
    to_utc,
    wall_clock_to_utc,
)

EDMONTON = pytz.timezone("America/Edmonton")


def test_get_zone_rejects_unknown_ids():
    with pytest.raises(ValidationException) as exc_info:
        get_zone("Not/AZone")
    assert exc_info.value.code == "INVALID_TIME_ZONE"
    assert exc_info.value.details == {"time_zone": "Not/AZone"}


def test_wall_clock_to_utc_follows_dst():
    assert wall_clock_to_utc(EDMONTON, date(2026, 1, 15), time(9, 0)) == datetime(2026, 1, 15, 16, 0, tzinfo=pytz.UTC)
    assert wall_clock_to_utc(EDMONTON, date(2026, 7, 15), time(9, 0)) == datetime(2026, 7, 15, 15, 0, tzinfo=pytz.UTC)


def test_naive_datetimes_are_treated_as_utc():
    naive = datetime(2026, 3, 4, 1, 30)

    assert to_utc(naive) == datetime(2026, 3, 4, 1, 30, tzinfo=pytz.UTC)
    assert to_local(naive, EDMONTON).hour == 18


def test_local_day_bounds_cover_whole_local_days():
    start, end = local_day_bounds_utc(EDMONTON, date(2026, 3, 7), date(2026, 3, 8))

    assert start == datetime(2026, 3, 7, 7, 0, tzinfo=pytz.UTC)
    # Midnight after the DST change is already MDT
    assert end == datetime(2026, 3, 9, 6, 0, tzinfo=pytz.UTC)


def test_epoch_millis_ignores_tzinfo_representation():
    aware = EDMONTON.localize(datetime(2026, 3, 3, 18, 30))
    naive_utc = datetime(2026, 3, 4, 1, 30)

    assert epoch_millis(aware) == epoch_millis(naive_utc)
