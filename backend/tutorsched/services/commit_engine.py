# backend/tutorsched/services/commit_engine.py
"""
Idempotent commit of resolved candidates.

Only the creatable partition is written, through a writer whose
skip-duplicates contract makes a repeated run a no-op. Resolution works from
a snapshot taken before the write and no lock is held across that gap, so
the write may persist fewer rows than intended when another run inserted the
same keys first. That shortfall is moved from created to skipped and logged;
the stored state still has no duplicate booking.

Dry runs use a writer that persists nothing and reports what a real write
would create.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ..core.exceptions import PersistenceException, RepositoryException
from ..domain.scheduling import CommitSummary, ResolutionResult, RuleOutcome, SessionCandidate
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)


class PersistenceWriter(Protocol):
    """Capability handed to the commit engine: persist candidates, return how many landed."""

    dry_run: bool

    def write(self, candidates: Sequence[SessionCandidate]) -> int:
        ...


def candidate_to_row(candidate: SessionCandidate, tenant_id: str, time_zone: str) -> Dict[str, Any]:
    return {
        "tenant_id": tenant_id,
        "center_id": candidate.center_id,
        "tutor_id": candidate.tutor_id,
        "session_type": candidate.session_type.value,
        "group_id": candidate.group_id,
        "start_at": candidate.occurrence.start_at_utc,
        "end_at": candidate.occurrence.end_at_utc,
        "timezone": time_zone,
    }


class SessionRepositoryWriter:
    """Writes through SessionRepository with skip-duplicates."""

    dry_run = False

    def __init__(self, repository: SessionRepository, tenant_id: str, time_zone: str):
        self.repository = repository
        self.tenant_id = tenant_id
        self.time_zone = time_zone

    def write(self, candidates: Sequence[SessionCandidate]) -> int:
        rows = [candidate_to_row(candidate, self.tenant_id, self.time_zone) for candidate in candidates]
        return self.repository.create_sessions(rows, skip_duplicates=True)


class DryRunWriter:
    """Performs zero writes; every candidate counts as created."""

    dry_run = True

    def __init__(self) -> None:
        self.would_write: List[SessionCandidate] = []

    def write(self, candidates: Sequence[SessionCandidate]) -> int:
        self.would_write.extend(candidates)
        return len(candidates)


def _group_by_rule(candidates: Sequence[SessionCandidate]) -> Dict[str, List[SessionCandidate]]:
    groups: Dict[str, List[SessionCandidate]] = {}
    for candidate in candidates:
        groups.setdefault(candidate.rule_label, []).append(candidate)
    return groups


def commit_with_breakdown(
    resolution: ResolutionResult,
    writer: PersistenceWriter,
) -> Tuple[CommitSummary, List[RuleOutcome]]:
    """
    Persist ``resolution.creatable`` rule by rule and reconcile the counts.

    Raises:
        PersistenceException: If the writer fails outright; nothing is retried here
    """
    creatable_by_rule = _group_by_rule(resolution.creatable)
    existing_by_rule = _group_by_rule(resolution.already_exists)
    labels = list(dict.fromkeys([*creatable_by_rule, *existing_by_rule]))

    outcomes: List[RuleOutcome] = []
    created_total = 0
    shortfall_total = 0

    for label in labels:
        intended = creatable_by_rule.get(label, [])
        existing = existing_by_rule.get(label, [])
        persisted = 0
        if intended:
            try:
                persisted = writer.write(intended)
            except (RepositoryException, SQLAlchemyError) as exc:
                logger.error(f"Session write failed for rule {label}: {str(exc)}")
                raise PersistenceException(
                    f"Failed to persist sessions: {str(exc)}",
                    code="SESSION_WRITE_FAILED",
                    details={"rule": label, "intended": len(intended)},
                ) from exc

        persisted = min(persisted, len(intended))
        shortfall = len(intended) - persisted
        if shortfall:
            logger.warning(
                f"Rule {label}: {shortfall} of {len(intended)} sessions were inserted concurrently; "
                "counting them as skipped"
            )
        created_total += persisted
        shortfall_total += shortfall

        sample = (intended or existing)[0]
        outcomes.append(
            RuleOutcome(
                label=label,
                group_id=sample.group_id,
                created_count=persisted,
                skipped_count=len(existing) + shortfall,
            )
        )

    summary = CommitSummary(
        created_count=created_total,
        skipped_count=len(resolution.already_exists) + shortfall_total,
        conflicts=resolution.batch_conflicts,
    )

    if not writer.dry_run:
        prometheus_metrics.record_commit(
            created=summary.created_count,
            skipped=summary.skipped_count,
            shortfall=shortfall_total,
            conflicts=len(summary.conflicts),
        )
    logger.info(
        f"Commit {'(dry run) ' if writer.dry_run else ''}created={summary.created_count} "
        f"skipped={summary.skipped_count} conflicts={len(summary.conflicts)}"
    )
    return summary, outcomes


def commit(resolution: ResolutionResult, writer: PersistenceWriter) -> CommitSummary:
    """Persist the creatable partition and return the reconciled summary."""
    summary, _ = commit_with_breakdown(resolution, writer)
    return summary
