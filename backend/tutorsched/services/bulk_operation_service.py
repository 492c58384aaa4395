# backend/tutorsched/services/bulk_operation_service.py
"""
Bulk Operation Service for the scheduling engine.

Applies a status transition (cancel with a reason) to an operator-selected
set of existing sessions, independent of recurrence expansion:
- Selection is de-duplicated and must be non-empty
- Reason codes come from a closed enumeration
- Missing, foreign-tenant and already-terminal sessions are excluded from the
  count without aborting the batch
"""

from datetime import datetime, timezone
import logging
from typing import Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.constants import AUDIT_ENTITY_SESSION, MAX_BULK_SESSION_IDS
from ..core.enums import (
    AuditResult,
    CancelReasonCode,
    CapabilityFlag,
    DeploymentEnvironment,
    SessionStatus,
)
from ..core.exceptions import PersistenceException, RepositoryException, ValidationException
from ..core.timezone_utils import to_utc
from ..domain.scheduling import BulkTransitionResult
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.session_repository import SessionRepository
from .audit_service import ACTION_BULK_CANCEL, AuditEvent, AuditService
from .base import BaseService
from .safety_gate import authorize

logger = logging.getLogger(__name__)


def normalize_session_ids(session_ids: Iterable[str]) -> List[str]:
    """Strip blanks and duplicates, keeping first-seen order."""
    cleaned = [str(session_id).strip() for session_id in session_ids if session_id is not None]
    unique = list(dict.fromkeys(session_id for session_id in cleaned if session_id))
    if not unique:
        raise ValidationException("Select at least one session", code="EMPTY_SELECTION")
    if len(unique) > MAX_BULK_SESSION_IDS:
        raise ValidationException(
            f"At most {MAX_BULK_SESSION_IDS} sessions can be changed at once",
            code="SELECTION_TOO_LARGE",
            details={"requested": len(unique), "limit": MAX_BULK_SESSION_IDS},
        )
    return unique


def parse_reason_code(reason_code: Union[CancelReasonCode, str]) -> CancelReasonCode:
    if isinstance(reason_code, CancelReasonCode):
        return reason_code
    try:
        return CancelReasonCode(str(reason_code).strip().upper())
    except ValueError:
        raise ValidationException(
            f"Unknown reason code: {reason_code!r}",
            code="INVALID_REASON_CODE",
            details={"allowed": [code.value for code in CancelReasonCode]},
        )


class BulkOperationService(BaseService):
    """
    Service for operator-driven bulk transitions of persisted sessions.

    Runs each batch in a single transaction together with its audit row.
    """

    def __init__(
        self,
        db: Session,
        session_repository: Optional[SessionRepository] = None,
        audit_service: Optional[AuditService] = None,
    ):
        """Initialize bulk operation service."""
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.session_repository = session_repository or RepositoryFactory.create_session_repository(db)
        self.audit_service = audit_service or AuditService(db)

    @BaseService.measure_operation("bulk_transition")
    def bulk_transition(
        self,
        tenant_id: str,
        session_ids: Iterable[str],
        reason_code: Union[CancelReasonCode, str],
        environment: Union[DeploymentEnvironment, str],
        confirm_production: bool = False,
        actor_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BulkTransitionResult:
        """
        Cancel the selected sessions with ``reason_code``.

        Raises:
            ForbiddenOperationException: From the safety gate
            ValidationException: Empty selection or unknown reason
            PersistenceException: If the store rejects the update
        """
        authorize([CapabilityFlag.BULK_TRANSITION], environment, confirm_production)
        ids = normalize_session_ids(session_ids)
        reason = parse_reason_code(reason_code)
        changed_at = now or datetime.now(timezone.utc)

        with self.transaction():
            try:
                rows = self.session_repository.update_sessions_status(
                    tenant_id, ids, SessionStatus.CANCELLED, reason, changed_at
                )
            except RepositoryException as exc:
                raise PersistenceException(
                    f"Failed to cancel sessions: {str(exc)}", code="BULK_TRANSITION_FAILED"
                ) from exc

            starts = sorted(to_utc(row.start_at) for row in rows)
            self.audit_service.record(
                AuditEvent(
                    action=ACTION_BULK_CANCEL,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    result=AuditResult.SUCCESS,
                    entity_type=AUDIT_ENTITY_SESSION,
                    counts={"transitioned_count": len(rows), "requested_count": len(ids)},
                    details={
                        "reason_code": reason.value,
                        "date_range_from": starts[0].isoformat() if starts else None,
                        "date_range_to": starts[-1].isoformat() if starts else None,
                    },
                )
            )

        if len(rows) < len(ids):
            self.logger.info(f"Bulk cancel skipped {len(ids) - len(rows)} missing or terminal sessions")
        prometheus_metrics.record_transition(reason.value, len(rows))
        return BulkTransitionResult(transitioned_count=len(rows))
