# backend/tutorsched/repositories/factory.py
"""
Repository Factory for the scheduling engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .audit_repository import AuditRepository
from .session_repository import SessionRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_session_repository(db: Session) -> SessionRepository:
        """Create repository for persisted sessions."""
        return SessionRepository(db)

    @staticmethod
    def create_audit_repository(db: Session) -> AuditRepository:
        """Create repository for audit trail rows."""
        return AuditRepository(db)
