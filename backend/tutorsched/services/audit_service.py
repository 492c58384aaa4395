# backend/tutorsched/services/audit_service.py
"""
Audit emission for schedule mutations.

Every commit, reset and bulk transition produces one structured record: who,
when, tenant, counts and conflicts. The record always goes to the
``tutorsched.audit`` logger; when AUDIT_ENABLED is set and the run is not a
dry run it is also stored as an AuditLog row inside the caller's transaction.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
from typing import Any, Dict, Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AuditResult
from ..models.audit_log import AuditLog
from ..repositories.audit_repository import AuditRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService

audit_logger = logging.getLogger("tutorsched.audit")

ACTION_GENERATE = "schedule.generate"
ACTION_RESET = "schedule.reset"
ACTION_BULK_CANCEL = "session.bulk_cancel"


@dataclass(frozen=True)
class AuditEvent:
    action: str
    tenant_id: str
    actor_id: Optional[str]
    result: AuditResult
    entity_type: str
    counts: Dict[str, int] = field(default_factory=dict)
    conflicts: Sequence[str] = ()
    details: Dict[str, Any] = field(default_factory=dict)
    dry_run: bool = False
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "tenant_id": self.tenant_id,
            "actor_id": self.actor_id,
            "result": self.result.value,
            "occurred_at": self.occurred_at.isoformat(),
            "dry_run": self.dry_run,
            **self.counts,
            "conflicts": list(self.conflicts),
            **self.details,
        }


class AuditService(BaseService):
    """Emits audit records for the external trail."""

    def __init__(self, db: Session, audit_repository: Optional[AuditRepository] = None):
        super().__init__(db)
        self.audit_repository = audit_repository or RepositoryFactory.create_audit_repository(db)

    def record(self, event: AuditEvent) -> Optional[AuditLog]:
        """
        Emit ``event``; returns the stored row, if one was written.

        Does not commit: the row joins whatever transaction the caller holds.
        """
        payload = event.to_record()
        audit_logger.info(json.dumps(payload, default=str, sort_keys=True))

        if event.dry_run or not settings.audit_enabled:
            return None

        row = AuditLog.from_event(
            tenant_id=event.tenant_id,
            entity_type=event.entity_type,
            action=event.action,
            result=event.result.value,
            actor_id=event.actor_id,
            details={key: value for key, value in payload.items() if key not in _ROW_COLUMNS},
            occurred_at=event.occurred_at,
        )
        self.audit_repository.write(row)
        return row


_ROW_COLUMNS = frozenset({"action", "tenant_id", "actor_id", "result", "occurred_at"})
