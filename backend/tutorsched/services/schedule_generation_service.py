# backend/tutorsched/services/schedule_generation_service.py
"""
Schedule Generation Service for the scheduling engine.

Runs the generation pipeline as typed stages:

    safety gate -> occurrence generation -> (optional) scoped reset
    -> existing-bindings snapshot -> conflict resolution -> idempotent commit
    -> audit

Reset, commit and the success audit row share one transaction, so a failed
commit also restores anything the reset removed. A failure after the gate
is recorded as a FAILURE audit row in its own transaction before the error
propagates. Re-running the same request is always safe.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
import logging
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import AUDIT_ENTITY_SCHEDULE
from ..core.enums import (
    GENERATED_SESSION_TYPES,
    AuditResult,
    CapabilityFlag,
    DeploymentEnvironment,
)
from ..core.exceptions import DomainException, PersistenceException, RepositoryException
from ..core.timezone_utils import get_zone, to_local
from ..domain.scheduling import (
    CommitSummary,
    ExclusionSet,
    ResetScope,
    ResolutionResult,
    ResourceBindingKey,
    RuleBinding,
    RuleOutcome,
    SessionCandidate,
    Term,
)
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from . import conflict_resolver, occurrence_generator
from .audit_service import ACTION_GENERATE, AuditEvent, AuditService
from .base import BaseService
from .commit_engine import DryRunWriter, PersistenceWriter, SessionRepositoryWriter, commit_with_breakdown
from .safety_gate import authorize
from .schedule_reset import ScheduleResetService, term_window

logger = logging.getLogger(__name__)


def generation_capabilities(replace_existing_in_range: bool, seed_test_data: bool) -> List[CapabilityFlag]:
    """Capabilities a generation run asks the safety gate for."""
    flags = [CapabilityFlag.GENERATE]
    if replace_existing_in_range:
        flags.append(CapabilityFlag.RESET_IN_RANGE)
    if seed_test_data:
        flags.append(CapabilityFlag.SEED_TEST_DATA)
    return flags


@dataclass(frozen=True)
class GenerationRequest:
    """Everything an operator supplies for one generation run."""

    tenant_id: str
    term: Term
    bindings: Sequence[RuleBinding]
    environment: Union[DeploymentEnvironment, str]
    exclusions: ExclusionSet = frozenset()
    dry_run: bool = False
    replace_existing_in_range: bool = False
    seed_test_data: bool = False
    confirm_production: bool = False
    actor_id: Optional[str] = None

    def requested_capabilities(self) -> List[CapabilityFlag]:
        return generation_capabilities(self.replace_existing_in_range, self.seed_test_data)


@dataclass(frozen=True)
class GenerationResult:
    summary: CommitSummary
    rule_outcomes: Tuple[RuleOutcome, ...]
    environment: DeploymentEnvironment
    dry_run: bool
    occurrence_count: int
    range_from: Optional[datetime]
    range_to: Optional[datetime]


@dataclass(frozen=True)
class OccurrenceSample:
    rule_label: str
    tutor_id: str
    center_id: str
    start_at_utc: datetime
    end_at_utc: datetime
    start_at_local: datetime


@dataclass(frozen=True)
class PreviewResult:
    result: GenerationResult
    samples: Tuple[OccurrenceSample, ...] = field(default_factory=tuple)


def reset_scope_for(bindings: Sequence[RuleBinding]) -> ResetScope:
    """Narrow a reset to the groups being regenerated, or to their centers when any rule has no group."""
    group_ids = {binding.group_id for binding in bindings}
    if bindings and None not in group_ids:
        return ResetScope(group_ids=frozenset(g for g in group_ids if g is not None))
    return ResetScope(center_ids=frozenset(binding.center_id for binding in bindings))


def _occurrence_range(candidates: Sequence[SessionCandidate]) -> Tuple[Optional[datetime], Optional[datetime]]:
    if not candidates:
        return None, None
    return (
        min(c.occurrence.start_at_utc for c in candidates),
        max(c.occurrence.end_at_utc for c in candidates),
    )


class ScheduleGenerationService(BaseService):
    """Operator-facing entry point for recurring schedule generation."""

    def __init__(
        self,
        db: Session,
        session_repository: Optional[SessionRepository] = None,
        audit_service: Optional[AuditService] = None,
        reset_service: Optional[ScheduleResetService] = None,
    ):
        super().__init__(db)
        self.session_repository = session_repository or RepositoryFactory.create_session_repository(db)
        self.audit_service = audit_service or AuditService(db)
        self.reset_service = reset_service or ScheduleResetService(
            db, session_repository=self.session_repository, audit_service=self.audit_service
        )

    @BaseService.measure_operation("generate_schedule")
    def generate_schedule(self, request: GenerationRequest) -> GenerationResult:
        """
        Generate, reconcile and commit a term's sessions.

        Raises:
            ForbiddenOperationException: From the safety gate, before anything else
            ValidationException: Invalid term, zone or rule; raised before any I/O
            PersistenceException: Store failure; the whole request may be retried
        """
        env = authorize(request.requested_capabilities(), request.environment, request.confirm_production)

        try:
            candidates = occurrence_generator.generate_for_bindings(
                request.term, request.bindings, request.exclusions
            )
            with self.transaction():
                summary, outcomes = self._reconcile_and_commit(request, env, candidates)
                range_from, range_to = _occurrence_range(candidates)
                result = GenerationResult(
                    summary=summary,
                    rule_outcomes=tuple(outcomes),
                    environment=env,
                    dry_run=request.dry_run,
                    occurrence_count=len(candidates),
                    range_from=range_from,
                    range_to=range_to,
                )
                self._audit(request, AuditResult.SUCCESS, result=result)
        except RepositoryException as exc:
            error = PersistenceException(f"Session store failure: {str(exc)}", code="SESSION_STORE_FAILURE")
            self._audit_failure(request, error)
            raise error from exc
        except DomainException as exc:
            self._audit_failure(request, exc)
            raise

        self.log_operation(
            "generate_schedule",
            tenant_id=request.tenant_id,
            created_count=result.summary.created_count,
            skipped_count=result.summary.skipped_count,
            deleted_count=result.summary.deleted_count,
            dry_run=request.dry_run,
        )
        return result

    @BaseService.measure_operation("preview_schedule")
    def preview(self, request: GenerationRequest, sample_limit: Optional[int] = None) -> PreviewResult:
        """Dry-run the request and attach a few sample occurrences in local time."""
        limit = settings.preview_sample_limit if sample_limit is None else max(0, sample_limit)
        dry_request = replace(request, dry_run=True)
        result = self.generate_schedule(dry_request)

        zone = get_zone(request.term.time_zone)
        candidates = occurrence_generator.generate_for_bindings(
            request.term, request.bindings, request.exclusions
        )
        ordered = sorted(candidates, key=lambda c: (c.occurrence.start_at_utc, c.rule_label))
        samples = tuple(
            OccurrenceSample(
                rule_label=c.rule_label,
                tutor_id=c.tutor_id,
                center_id=c.center_id,
                start_at_utc=c.occurrence.start_at_utc,
                end_at_utc=c.occurrence.end_at_utc,
                start_at_local=to_local(c.occurrence.start_at_utc, zone),
            )
            for c in ordered[:limit]
        )
        return PreviewResult(result=result, samples=samples)

    # Pipeline stages

    def _reconcile_and_commit(
        self,
        request: GenerationRequest,
        env: DeploymentEnvironment,
        candidates: List[SessionCandidate],
    ) -> Tuple[CommitSummary, List[RuleOutcome]]:
        deleted = 0
        reset_keys: Set[ResourceBindingKey] = set()
        if request.replace_existing_in_range:
            window = term_window(request.term)
            scope = reset_scope_for(request.bindings)
            if request.dry_run:
                # Nothing is deleted on a dry run; treat what the reset would remove as gone.
                reset_keys = self.session_repository.find_resettable_bindings(
                    request.tenant_id, GENERATED_SESSION_TYPES, window, scope.center_ids, scope.group_ids
                )
            deleted = self.reset_service.reset_range(
                request.tenant_id,
                scope,
                window,
                env,
                confirm_production=request.confirm_production,
                dry_run=request.dry_run,
                actor_id=request.actor_id,
            )

        resolution = self._resolve(request.tenant_id, candidates, reset_keys)
        writer: PersistenceWriter
        if request.dry_run:
            writer = DryRunWriter()
        else:
            writer = SessionRepositoryWriter(self.session_repository, request.tenant_id, request.term.time_zone)
        summary, outcomes = commit_with_breakdown(resolution, writer)
        return summary.with_deleted(deleted), outcomes

    def _resolve(
        self,
        tenant_id: str,
        candidates: List[SessionCandidate],
        ignored_keys: Set[ResourceBindingKey],
    ) -> ResolutionResult:
        scope = conflict_resolver.query_scope(candidates)
        existing: Set[ResourceBindingKey] = set()
        if not scope.is_empty:
            existing = self.session_repository.find_bindings(
                tenant_id, scope.tutor_ids, scope.center_ids, scope.window
            )
        return conflict_resolver.resolve(candidates, existing - ignored_keys)

    # Audit

    def _audit(
        self,
        request: GenerationRequest,
        outcome: AuditResult,
        result: Optional[GenerationResult] = None,
        error: Optional[DomainException] = None,
    ) -> None:
        counts: Dict[str, int] = {}
        details: Dict[str, Any] = {
            "term_start": request.term.start_date.isoformat(),
            "term_end": request.term.end_date.isoformat(),
            "time_zone": request.term.time_zone,
            "replace_existing_in_range": request.replace_existing_in_range,
        }
        conflicts: Sequence[str] = ()
        if result is not None:
            counts = {
                "created_count": result.summary.created_count,
                "skipped_count": result.summary.skipped_count,
                "deleted_count": result.summary.deleted_count,
            }
            conflicts = result.summary.conflicts
            details["range_from"] = result.range_from.isoformat() if result.range_from else None
            details["range_to"] = result.range_to.isoformat() if result.range_to else None
        if error is not None:
            details["error_code"] = error.code
            details["error"] = error.message

        self.audit_service.record(
            AuditEvent(
                action=ACTION_GENERATE,
                tenant_id=request.tenant_id,
                actor_id=request.actor_id,
                result=outcome,
                entity_type=AUDIT_ENTITY_SCHEDULE,
                counts=counts,
                conflicts=conflicts,
                details=details,
                dry_run=request.dry_run,
            )
        )

    def _audit_failure(self, request: GenerationRequest, error: DomainException) -> None:
        try:
            with self.transaction():
                self._audit(request, AuditResult.FAILURE, error=error)
        except (PersistenceException, SQLAlchemyError) as audit_error:
            self.logger.error(f"Could not record failed generation for tenant {request.tenant_id}: {audit_error}")
