# backend/tutorsched/models/session.py
"""
Persisted tutoring session model.

A row is one concrete session at one absolute instant. The engine never owns
session identity: it reads rows for conflict checks and creates, deletes or
transitions them through the session repository. Uniqueness of
(tenant, tutor, center, start instant) is what makes repeated generation runs
idempotent.
"""

from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy import Column, DateTime, Index, String, UniqueConstraint
from sqlalchemy.sql import func

from ..core.enums import SessionStatus, SessionType
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class TutoringSession(Base):
    """
    One scheduled session for a tutor at a center.

    Attributes:
        tenant_id: Owning tenant; every query is scoped by it
        session_type: ONE_ON_ONE, GROUP or CLASS
        group_id: Recurring group the session was generated for, if any
        start_at / end_at: Absolute instants (UTC)
        timezone: IANA zone the session was scheduled in
        status: SCHEDULED, CANCELLED or COMPLETED
    """

    __tablename__ = "sessions"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    tenant_id = Column(String(64), nullable=False, index=True)
    center_id = Column(String(64), nullable=False)
    tutor_id = Column(String(64), nullable=False)
    session_type = Column(String(20), nullable=False, default=SessionType.GROUP.value)
    group_id = Column(String(64), nullable=True, index=True)

    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    timezone = Column(String(64), nullable=False)

    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason_code = Column(String(32), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_now_utc)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "tutor_id",
            "center_id",
            "start_at",
            name="uq_sessions_tenant_tutor_center_start",
        ),
        Index("ix_sessions_tenant_start", "tenant_id", "start_at"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = SessionStatus.SCHEDULED.value

    def __repr__(self) -> str:
        return (
            f"<TutoringSession {self.id}: tenant={self.tenant_id}, tutor={self.tutor_id}, "
            f"center={self.center_id}, start={self.start_at}, status={self.status}>"
        )
