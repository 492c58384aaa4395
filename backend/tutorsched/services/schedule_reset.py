# backend/tutorsched/services/schedule_reset.py
"""
Scoped reset of a term's generated sessions.

Staging-only support for regenerating a schedule from scratch. The safety
gate runs before anything touches the store, so a production caller is
refused without a single delete being issued. Only generator-owned kinds
(GROUP, CLASS) inside the half-open window are removed; one-on-one and
already-cancelled sessions are never touched.
"""

from typing import Optional, Union

from sqlalchemy.orm import Session

from ..core.constants import AUDIT_ENTITY_SCHEDULE
from ..core.enums import GENERATED_SESSION_TYPES, AuditResult, CapabilityFlag, DeploymentEnvironment
from ..core.exceptions import PersistenceException, RepositoryException
from ..core.timezone_utils import get_zone, local_day_bounds_utc
from ..domain.scheduling import ResetScope, Term, TimeWindow
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from .audit_service import ACTION_RESET, AuditEvent, AuditService
from .base import BaseService
from .safety_gate import authorize


def term_window(term: Term) -> TimeWindow:
    """``[start_date 00:00, end_date + 1 day 00:00)`` in the term's zone, as UTC."""
    start, end = local_day_bounds_utc(get_zone(term.time_zone), term.start_date, term.end_date)
    return TimeWindow(start=start, end=end)


class ScheduleResetService(BaseService):
    """Deletes generated sessions of one tenant inside a window."""

    def __init__(
        self,
        db: Session,
        session_repository: Optional[SessionRepository] = None,
        audit_service: Optional[AuditService] = None,
    ):
        super().__init__(db)
        self.session_repository = session_repository or RepositoryFactory.create_session_repository(db)
        self.audit_service = audit_service or AuditService(db)

    @BaseService.measure_operation("reset_range")
    def reset_range(
        self,
        tenant_id: str,
        scope: ResetScope,
        window: TimeWindow,
        environment: Union[DeploymentEnvironment, str],
        confirm_production: bool = False,
        dry_run: bool = False,
        actor_id: Optional[str] = None,
    ) -> int:
        """
        Delete (or, for a dry run, count) generated sessions in ``window``.

        Runs inside the caller's transaction; nothing is committed here.

        Raises:
            ForbiddenOperationException: Outside staging, before any delete
            PersistenceException: If the store rejects the delete
        """
        env = authorize([CapabilityFlag.RESET_IN_RANGE], environment, confirm_production)

        try:
            if dry_run:
                affected = self.session_repository.count_sessions(
                    tenant_id, GENERATED_SESSION_TYPES, window, scope.center_ids, scope.group_ids
                )
            else:
                affected = self.session_repository.delete_sessions(
                    tenant_id, GENERATED_SESSION_TYPES, window, scope.center_ids, scope.group_ids
                )
        except RepositoryException as exc:
            raise PersistenceException(
                f"Failed to reset sessions: {str(exc)}", code="SESSION_RESET_FAILED"
            ) from exc

        if not dry_run:
            prometheus_metrics.record_reset(affected)

        self.log_operation("reset_range", tenant_id=tenant_id, deleted_count=affected, dry_run=dry_run)
        self.audit_service.record(
            AuditEvent(
                action=ACTION_RESET,
                tenant_id=tenant_id,
                actor_id=actor_id,
                result=AuditResult.SUCCESS,
                entity_type=AUDIT_ENTITY_SCHEDULE,
                counts={"deleted_count": affected},
                details={
                    "environment": env.value,
                    "window_start": window.start.isoformat(),
                    "window_end": window.end.isoformat(),
                },
                dry_run=dry_run,
            )
        )
        return affected
