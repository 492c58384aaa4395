# backend/tutorsched/utils/schedule_loader.py
"""
Loaders for operator-supplied schedule files.

A schedule file is YAML:

    tenant_id: mmc-calgary
    term:
      start_date: 2026-02-09
      end_date: 2026-06-13
      time_zone: America/Edmonton
    rules:
      - label: Singapore Math G4 (Tue 6:30 PM)
        weekday: 2
        start_time: "18:30"
        duration_minutes: 60
        tutor_id: tutor-1
        center_id: center-1
        group_id: group-g4
        session_type: GROUP

An exclude-dates file holds one YYYY-MM-DD per line; blank lines and lines
starting with ``#`` are ignored.
"""

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..core.enums import SessionType
from ..core.exceptions import ValidationException
from ..domain.scheduling import ExclusionSet, RecurrenceRule, RuleBinding, Term, describe_rule


@dataclass(frozen=True)
class ScheduleFile:
    source: Path
    tenant_id: str
    term: Term
    bindings: Tuple[RuleBinding, ...]


def _parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationException(
            f"{field_name} must be YYYY-MM-DD, got {value!r}",
            code="INVALID_SCHEDULE_FILE",
            details={"field": field_name},
        )


def _parse_start_time(value: Any) -> str:
    # Unquoted 18:30 is read by YAML 1.1 as the base-60 integer 1110.
    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value // 60:02d}:{value % 60:02d}"
    return str(value).strip()


def _require(mapping: Dict[str, Any], key: str, context: str) -> Any:
    if key not in mapping or mapping[key] in (None, ""):
        raise ValidationException(
            f"{context}: missing '{key}'", code="INVALID_SCHEDULE_FILE", details={"field": key}
        )
    return mapping[key]


def _parse_rule(entry: Dict[str, Any], index: int) -> RuleBinding:
    context = f"rules[{index}]"
    if not isinstance(entry, dict):
        raise ValidationException(f"{context} must be a mapping", code="INVALID_SCHEDULE_FILE")

    try:
        weekday = int(_require(entry, "weekday", context))
        duration = int(_require(entry, "duration_minutes", context))
    except (TypeError, ValueError):
        raise ValidationException(
            f"{context}: weekday and duration_minutes must be integers", code="INVALID_SCHEDULE_FILE"
        )
    try:
        session_type = SessionType(str(entry.get("session_type", SessionType.GROUP.value)).upper())
    except ValueError:
        raise ValidationException(
            f"{context}: unknown session_type {entry.get('session_type')!r}", code="INVALID_SCHEDULE_FILE"
        )

    rule = RecurrenceRule(
        weekday=weekday,
        start_time_local=_parse_start_time(_require(entry, "start_time", context)),
        duration_minutes=duration,
    )
    group_id: Optional[str] = entry.get("group_id")
    tutor_id = str(_require(entry, "tutor_id", context))
    return RuleBinding(
        rule=rule,
        tutor_id=tutor_id,
        center_id=str(_require(entry, "center_id", context)),
        label=str(entry.get("label") or f"{group_id or tutor_id} {describe_rule(rule)}"),
        group_id=str(group_id) if group_id is not None else None,
        session_type=session_type,
    )


def load_schedule_file(path: Path, tenant_override: Optional[str] = None) -> ScheduleFile:
    """Read and shape-check a YAML schedule file; scheduling rules are checked later."""
    if not path.exists():
        raise ValidationException(f"Schedule file not found: {path}", code="SCHEDULE_FILE_NOT_FOUND")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValidationException("Schedule file must be a mapping", code="INVALID_SCHEDULE_FILE")

    tenant_id = tenant_override or data.get("tenant_id")
    if not tenant_id:
        raise ValidationException("Schedule file has no tenant_id", code="INVALID_SCHEDULE_FILE")

    term_data = data.get("term") or {}
    if not isinstance(term_data, dict):
        raise ValidationException("term must be a mapping", code="INVALID_SCHEDULE_FILE")
    term = Term(
        start_date=_parse_date(_require(term_data, "start_date", "term"), "term.start_date"),
        end_date=_parse_date(_require(term_data, "end_date", "term"), "term.end_date"),
        time_zone=str(_require(term_data, "time_zone", "term")),
    )

    raw_rules: List[Any] = data.get("rules") or []
    if not raw_rules:
        raise ValidationException("Schedule file has no rules", code="INVALID_SCHEDULE_FILE")

    return ScheduleFile(
        source=path,
        tenant_id=str(tenant_id),
        term=term,
        bindings=tuple(_parse_rule(entry, index) for index, entry in enumerate(raw_rules)),
    )


def parse_exclude_dates(text: str) -> ExclusionSet:
    dates = set()
    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        dates.add(_parse_date(line, f"exclude-dates line {line_number}"))
    return frozenset(dates)


def load_exclude_dates(path: Path) -> ExclusionSet:
    if not path.exists():
        raise ValidationException(f"Exclude-dates file not found: {path}", code="EXCLUDE_FILE_NOT_FOUND")
    return parse_exclude_dates(path.read_text(encoding="utf-8"))
