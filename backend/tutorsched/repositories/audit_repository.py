# backend/tutorsched/repositories/audit_repository.py
"""
Audit trail persistence.

Rows are appended inside the caller's transaction so an audit entry lands
exactly when the mutation it describes does.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from tutorsched.models.audit_log import AuditLog
from tutorsched.monitoring.prometheus_metrics import prometheus_metrics


class AuditRepository:
    """Append and page through a tenant's audit rows."""

    def __init__(self, db: Session):
        self.db = db

    def write(self, audit: AuditLog) -> None:
        self.db.add(audit)
        self.db.flush()
        prometheus_metrics.record_audit_write(audit.action, audit.result)

    def list(
        self,
        tenant_id: str,
        *,
        action: Optional[str] = None,
        result: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AuditLog], int]:
        """Newest-first page of matching rows plus the unpaged total."""
        stmt: Select[Any] = select(AuditLog).where(AuditLog.tenant_id == tenant_id)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        if result:
            stmt = stmt.where(AuditLog.result == result)
        if since is not None:
            stmt = stmt.where(AuditLog.occurred_at >= since)

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        page = stmt.order_by(AuditLog.occurred_at.desc()).offset(max(0, offset)).limit(max(0, limit))
        return list(self.db.execute(page).scalars().all()), int(total)
