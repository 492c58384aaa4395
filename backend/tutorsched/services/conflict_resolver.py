# backend/tutorsched/services/conflict_resolver.py
"""
Conflict and dedup resolution for generated candidates.

Partitions a batch into creatable, already-existing and in-batch conflicts.
Within the batch the first candidate for a binding key wins; every later
candidate with the same key is reported, since two rules scheduling the same
tutor at the same center and instant is an authoring mistake. A match against
the store is the normal idempotent re-run path and is not an error.
"""

from __future__ import annotations

from datetime import timedelta
import logging
from typing import AbstractSet, Iterable, List, Sequence, Set

from ..domain.scheduling import (
    BindingQueryScope,
    ResolutionResult,
    ResourceBindingKey,
    SessionCandidate,
    TimeWindow,
)

logger = logging.getLogger(__name__)

_ONE_MS = timedelta(milliseconds=1)


def conflict_message(key: ResourceBindingKey, rule_label: str) -> str:
    return f"Overlap for {key} (rule: {rule_label})"


def resolve(
    candidates: Iterable[SessionCandidate],
    existing_bindings: AbstractSet[ResourceBindingKey],
) -> ResolutionResult:
    """
    Partition ``candidates`` against themselves and ``existing_bindings``.

    In-batch dedup runs first, so a duplicate of a key that also exists in the
    store is reported as a conflict rather than counted twice as existing.
    """
    seen: Set[ResourceBindingKey] = set()
    deduped: List[SessionCandidate] = []
    conflicts: List[str] = []

    for candidate in candidates:
        key = candidate.key
        if key in seen:
            conflicts.append(conflict_message(key, candidate.rule_label))
            continue
        seen.add(key)
        deduped.append(candidate)

    creatable: List[SessionCandidate] = []
    already_exists: List[SessionCandidate] = []
    for candidate in deduped:
        if candidate.key in existing_bindings:
            already_exists.append(candidate)
        else:
            creatable.append(candidate)

    if conflicts:
        logger.warning(f"{len(conflicts)} in-batch overlaps detected")

    return ResolutionResult(
        creatable=tuple(creatable),
        already_exists=tuple(already_exists),
        batch_conflicts=tuple(conflicts),
    )


def query_scope(candidates: Sequence[SessionCandidate]) -> BindingQueryScope:
    """
    Tutors, centers and the covering half-open window to fetch existing bindings for.

    The window runs from the earliest start to one millisecond past the latest
    start, so every candidate start falls inside it.
    """
    if not candidates:
        return BindingQueryScope(tutor_ids=frozenset(), center_ids=frozenset(), window=None)

    starts = [candidate.occurrence.start_at_utc for candidate in candidates]
    latest = max(starts)
    return BindingQueryScope(
        tutor_ids=frozenset(candidate.tutor_id for candidate in candidates),
        center_ids=frozenset(candidate.center_id for candidate in candidates),
        window=TimeWindow(start=min(starts), end=latest + _ONE_MS),
    )
