# backend/tutorsched/utils/run_log.py
"""Markdown run log appended after each term-setup run."""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..domain.scheduling import Term
from ..services.schedule_generation_service import GenerationResult


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


def format_run_entry(
    *,
    result: GenerationResult,
    tenant_id: str,
    term: Term,
    schedule_source: str,
    replace_existing_in_range: bool,
    now: Optional[datetime] = None,
) -> str:
    now_utc = now.astimezone(timezone.utc) if now else datetime.now(timezone.utc)
    now_local = now_utc.astimezone()

    rule_lines: List[str] = [
        f"- {outcome.label}"
        + (f" (groupId: {outcome.group_id})" if outcome.group_id else "")
        + f": sessions created {outcome.created_count}, skipped {outcome.skipped_count}"
        for outcome in result.rule_outcomes
    ] or ["- none"]
    conflict_lines = [f"- {conflict}" for conflict in result.summary.conflicts] or ["- none"]

    lines = [
        "",
        f"## Run - {now_local:%Y-%m-%d %H:%M}",
        "",
        f"- Timestamp (local): {now_local:%Y-%m-%d %H:%M}",
        f"- Timestamp (UTC): {now_utc:%Y-%m-%d %H:%M}",
        f"- Environment: {result.environment.value}",
        f"- Dry run: {_yes_no(result.dry_run)}",
        f"- Replace existing in range: {_yes_no(replace_existing_in_range)}",
        f"- Tenant ID: {tenant_id}",
        "",
        "### Rules & Sessions",
        *rule_lines,
        "",
        "### Session Conflicts",
        *conflict_lines,
        "",
        "### Totals",
        f"- Sessions deleted: {result.summary.deleted_count}",
        f"- Sessions created: {result.summary.created_count}",
        f"- Sessions skipped: {result.summary.skipped_count}",
        "",
        f"- Schedule source: {schedule_source}",
        f"- Term range: {term.start_date.isoformat()} to {term.end_date.isoformat()} ({term.time_zone})",
        "",
    ]
    return "\n".join(lines)


def append_run_log(path: Path, entry: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(entry)
