# backend/tutorsched/services/occurrence_generator.py
"""
Occurrence generation for weekly recurrence rules.

Pure functions: a term, a rule and an exclusion set go in, absolute
occurrences come out. Nothing here reads the clock or the database, so the
same inputs always produce the same occurrences.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
import logging
from typing import Iterable, Iterator, List, Sequence

import pytz

from ..core.constants import LOCAL_TIME_PATTERN, MINUTES_PER_DAY
from ..core.exceptions import ValidationException
from ..core.timezone_utils import get_zone, localize_wall_clock
from ..domain.scheduling import (
    ExclusionSet,
    Occurrence,
    RecurrenceRule,
    RuleBinding,
    SessionCandidate,
    Term,
)

logger = logging.getLogger(__name__)

_EMPTY_EXCLUSIONS: ExclusionSet = frozenset()


def validate_term(term: Term) -> None:
    """Reject unordered dates and unknown zones."""
    if term.start_date > term.end_date:
        raise ValidationException(
            f"Term start {term.start_date.isoformat()} is after end {term.end_date.isoformat()}",
            code="INVALID_TERM",
            details={"start_date": term.start_date.isoformat(), "end_date": term.end_date.isoformat()},
        )
    get_zone(term.time_zone)


def validate_rule(rule: RecurrenceRule) -> None:
    """
    Reject malformed rules, including any whose end reaches local midnight.

    Overnight sessions are not rolled into the next day.
    """
    if isinstance(rule.weekday, bool) or not isinstance(rule.weekday, int) or not 1 <= rule.weekday <= 7:
        raise ValidationException(
            f"Weekday must be an ISO weekday 1-7, got {rule.weekday!r}",
            code="INVALID_WEEKDAY",
            details={"weekday": rule.weekday},
        )
    if not isinstance(rule.start_time_local, str) or not LOCAL_TIME_PATTERN.match(rule.start_time_local):
        raise ValidationException(
            f"Start time must be HH:mm (00:00-23:59), got {rule.start_time_local!r}",
            code="INVALID_START_TIME",
            details={"start_time_local": rule.start_time_local},
        )
    duration = rule.duration_minutes
    if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
        raise ValidationException(
            f"Duration must be a positive number of minutes, got {duration!r}",
            code="INVALID_DURATION",
            details={"duration_minutes": duration},
        )

    start = rule.start_time
    if start.hour * 60 + start.minute + duration >= MINUTES_PER_DAY:
        raise ValidationException(
            f"Session starting {rule.start_time_local} for {duration} minutes crosses local midnight",
            code="CROSSES_MIDNIGHT",
            details={"start_time_local": rule.start_time_local, "duration_minutes": duration},
        )


def _matching_dates(term: Term, weekday: int, exclusions: ExclusionSet) -> Iterator[date]:
    offset = (weekday - term.start_date.isoweekday()) % 7
    current = term.start_date + timedelta(days=offset)
    while current <= term.end_date:
        if current not in exclusions:
            yield current
        current += timedelta(days=7)


def generate(
    term: Term,
    rule: RecurrenceRule,
    exclusions: ExclusionSet = _EMPTY_EXCLUSIONS,
) -> List[Occurrence]:
    """
    Expand ``rule`` over every matching local date of ``term``.

    Start and end are each converted with the offset in force at their own
    local moment, so the wall-clock time stays fixed across DST changes.
    A start that falls in a spring-forward gap is moved forward by the gap;
    if that puts it at or past its wall-clock end, the end keeps the rule's
    duration from the shifted start.

    Raises:
        ValidationException: For an invalid term, zone or rule
    """
    validate_term(term)
    validate_rule(rule)

    zone = get_zone(term.time_zone)
    start_time = rule.start_time
    duration = timedelta(minutes=rule.duration_minutes)

    occurrences: List[Occurrence] = []
    for local_date in _matching_dates(term, rule.weekday, exclusions):
        local_start = datetime.combine(local_date, start_time)
        start_at = localize_wall_clock(zone, local_start).astimezone(pytz.UTC)
        end_at = localize_wall_clock(zone, local_start + duration).astimezone(pytz.UTC)
        if end_at <= start_at:
            # Start was pushed forward out of a DST gap past its own wall-clock end.
            end_at = start_at + duration
        occurrences.append(Occurrence(start_at_utc=start_at, end_at_utc=end_at, local_date=local_date))

    occurrences.sort(key=lambda occ: occ.start_at_utc)
    return occurrences


def generate_for_bindings(
    term: Term,
    bindings: Sequence[RuleBinding],
    exclusions: ExclusionSet = _EMPTY_EXCLUSIONS,
) -> List[SessionCandidate]:
    """
    Expand several bound rules into candidates, in binding order.

    Every rule is validated before any expansion happens.
    """
    validate_term(term)
    if not bindings:
        raise ValidationException("At least one recurrence rule is required", code="NO_RULES")
    for binding in bindings:
        validate_rule(binding.rule)

    candidates: List[SessionCandidate] = []
    for binding in bindings:
        occurrences = generate(term, binding.rule, exclusions)
        logger.debug(f"Rule {binding.label}: {len(occurrences)} occurrences")
        candidates.extend(_bind(binding, occurrences))
    return candidates


def _bind(binding: RuleBinding, occurrences: Iterable[Occurrence]) -> Iterator[SessionCandidate]:
    for occurrence in occurrences:
        yield SessionCandidate(
            occurrence=occurrence,
            tutor_id=binding.tutor_id,
            center_id=binding.center_id,
            rule_label=binding.label,
            group_id=binding.group_id,
            session_type=binding.session_type,
        )
