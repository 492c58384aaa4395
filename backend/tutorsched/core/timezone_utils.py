"""
Timezone utilities for the scheduling engine.

Wall-clock times are converted with the zone offset in force at that local
moment, so a weekly 18:30 keeps its local time across DST changes while its
UTC instant shifts.
"""

from datetime import date, datetime, time, timedelta
import logging

import pytz

from .exceptions import ValidationException

logger = logging.getLogger(__name__)


def get_zone(time_zone: str) -> pytz.BaseTzInfo:
    """
    Resolve an IANA zone id.

    Raises:
        ValidationException: If the zone is not recognized
    """
    try:
        return pytz.timezone(time_zone)
    except (pytz.UnknownTimeZoneError, AttributeError, ValueError):
        raise ValidationException(
            f"Unknown time zone: {time_zone!r}",
            code="INVALID_TIME_ZONE",
            details={"time_zone": time_zone},
        )


def localize_wall_clock(zone: pytz.BaseTzInfo, local: datetime) -> datetime:
    """
    Attach ``zone`` to a naive wall-clock datetime.

    A wall-clock time skipped by a spring-forward transition is moved forward
    by the size of the gap (02:30 becomes 03:30). A repeated wall-clock time
    in a fall-back transition resolves to its first occurrence.
    """
    try:
        return zone.localize(local, is_dst=None)
    except pytz.NonExistentTimeError:
        shifted = zone.normalize(zone.localize(local, is_dst=False))
        logger.debug(f"Nonexistent local time {local.isoformat()} in {zone.zone}; using {shifted.isoformat()}")
        return shifted
    except pytz.AmbiguousTimeError:
        return zone.localize(local, is_dst=True)


def wall_clock_to_utc(zone: pytz.BaseTzInfo, local_date: date, local_time: time) -> datetime:
    """Convert a local date + wall-clock time to an aware UTC datetime."""
    return localize_wall_clock(zone, datetime.combine(local_date, local_time)).astimezone(pytz.UTC)


def to_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive datetimes (as returned by SQLite) are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def to_local(dt: datetime, zone: pytz.BaseTzInfo) -> datetime:
    """Convert an instant to wall-clock time in ``zone``."""
    return to_utc(dt).astimezone(zone)


def local_day_bounds_utc(zone: pytz.BaseTzInfo, first_day: date, last_day: date) -> tuple[datetime, datetime]:
    """
    Return ``[first_day 00:00, (last_day + 1) 00:00)`` in ``zone`` as UTC instants.
    """
    start = wall_clock_to_utc(zone, first_day, time.min)
    end = wall_clock_to_utc(zone, last_day + timedelta(days=1), time.min)
    return start, end


def epoch_millis(dt: datetime) -> int:
    """Milliseconds since the Unix epoch for an instant."""
    utc = to_utc(dt)
    delta = utc - datetime(1970, 1, 1, tzinfo=pytz.UTC)
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
