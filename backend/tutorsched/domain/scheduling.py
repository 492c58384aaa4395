# backend/tutorsched/domain/scheduling.py
"""
Value types for the generation pipeline.

Term, RecurrenceRule and the exclusion set arrive per invocation. Occurrences,
candidates and binding keys exist only inside one generation pass. None of
these types touch the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import FrozenSet, Optional, Tuple

from ..core.constants import ISO_WEEKDAY_LABELS, LOCAL_TIME_PATTERN
from ..core.enums import SessionType
from ..core.timezone_utils import epoch_millis

ExclusionSet = FrozenSet[date]


@dataclass(frozen=True)
class Term:
    """Inclusive local-date window expanded in ``time_zone``."""

    start_date: date
    end_date: date
    time_zone: str


@dataclass(frozen=True)
class RecurrenceRule:
    """Weekly pattern. ``weekday`` is ISO (1 = Monday ... 7 = Sunday)."""

    weekday: int
    start_time_local: str
    duration_minutes: int

    @property
    def start_time(self) -> time:
        hours, minutes = self.start_time_local.split(":")
        return time(int(hours), int(minutes))


@dataclass(frozen=True)
class RuleBinding:
    """A recurrence rule bound to the tutor, center and group it schedules."""

    rule: RecurrenceRule
    tutor_id: str
    center_id: str
    label: str
    group_id: Optional[str] = None
    session_type: SessionType = SessionType.GROUP


@dataclass(frozen=True, order=True)
class Occurrence:
    start_at_utc: datetime
    end_at_utc: datetime
    local_date: date = field(compare=False)


@dataclass(frozen=True)
class ResourceBindingKey:
    """
    Uniqueness domain for "can this session exist".

    The instant is held as epoch milliseconds so keys built from a candidate and
    keys read back from the store compare equal regardless of tzinfo.
    """

    tutor_id: str
    center_id: str
    start_at_millis: int

    @classmethod
    def of(cls, tutor_id: str, center_id: str, start_at: datetime) -> "ResourceBindingKey":
        return cls(tutor_id=tutor_id, center_id=center_id, start_at_millis=epoch_millis(start_at))

    def __str__(self) -> str:
        return f"{self.tutor_id}-{self.center_id}-{self.start_at_millis}"


@dataclass(frozen=True)
class SessionCandidate:
    occurrence: Occurrence
    tutor_id: str
    center_id: str
    rule_label: str
    group_id: Optional[str] = None
    session_type: SessionType = SessionType.GROUP

    @property
    def key(self) -> ResourceBindingKey:
        return ResourceBindingKey.of(self.tutor_id, self.center_id, self.occurrence.start_at_utc)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open ``[start, end)`` interval of UTC instants."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class BindingQueryScope:
    """What the resolver needs fetched from the store: tutors, centers and a window."""

    tutor_ids: FrozenSet[str]
    center_ids: FrozenSet[str]
    window: Optional[TimeWindow]

    @property
    def is_empty(self) -> bool:
        return self.window is None


@dataclass(frozen=True)
class ResetScope:
    """
    Optional narrowing of a scoped reset inside one tenant.

    ``None`` leaves a dimension unrestricted; an empty set matches no sessions.
    """

    center_ids: Optional[FrozenSet[str]] = None
    group_ids: Optional[FrozenSet[str]] = None


@dataclass(frozen=True)
class ResolutionResult:
    creatable: Tuple[SessionCandidate, ...]
    already_exists: Tuple[SessionCandidate, ...]
    batch_conflicts: Tuple[str, ...]


@dataclass(frozen=True)
class CommitSummary:
    created_count: int
    skipped_count: int
    deleted_count: int = 0
    conflicts: Tuple[str, ...] = ()

    def with_deleted(self, deleted_count: int) -> "CommitSummary":
        return CommitSummary(
            created_count=self.created_count,
            skipped_count=self.skipped_count,
            deleted_count=deleted_count,
            conflicts=self.conflicts,
        )


@dataclass(frozen=True)
class RuleOutcome:
    """Per-rule created/skipped breakdown reported alongside the summary."""

    label: str
    group_id: Optional[str]
    created_count: int
    skipped_count: int


@dataclass(frozen=True)
class BulkTransitionResult:
    transitioned_count: int


def describe_rule(rule: RecurrenceRule) -> str:
    """Human label such as ``Tue 6:30 PM (60 min)``."""
    if not isinstance(rule.start_time_local, str) or not LOCAL_TIME_PATTERN.match(rule.start_time_local):
        return f"weekday {rule.weekday} at {rule.start_time_local!r}"
    hours, minutes = (int(part) for part in rule.start_time_local.split(":"))
    suffix = "PM" if hours >= 12 else "AM"
    return (
        f"{ISO_WEEKDAY_LABELS.get(rule.weekday, '?')} {hours % 12 or 12}:{minutes:02d} {suffix} "
        f"({rule.duration_minutes} min)"
    )
