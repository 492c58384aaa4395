# backend/tutorsched/models/audit_log.py
"""
Audit logging model for schedule mutations.

One row per commit, reset or bulk transition. Rendering and retention of the
trail belong to the audit consumer; this table only stores what happened.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from tutorsched.core.ulid_helper import generate_ulid
from tutorsched.database import Base


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for defaults."""
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """Persistence model for audit trail entries."""

    __tablename__ = "audit_log"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    tenant_id = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=True)
    action = Column(String(40), nullable=False)
    result = Column(String(10), nullable=False)
    actor_id = Column(String(64), nullable=True)
    occurred_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )
    # "metadata" is reserved on declarative classes
    details = Column(
        "metadata",
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=True,
    )

    @classmethod
    def from_event(
        cls,
        *,
        tenant_id: str,
        entity_type: str,
        action: str,
        result: str,
        actor_id: str | None,
        details: Mapping[str, Any] | None,
        entity_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> "AuditLog":
        """Factory helper to build an AuditLog row from an emitted audit event."""
        return cls(
            tenant_id=tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            result=result,
            actor_id=actor_id,
            occurred_at=occurred_at or _now_utc(),
            details=dict(details) if details is not None else None,
        )
