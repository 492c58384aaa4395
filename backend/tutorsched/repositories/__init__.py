"""Data access layer: repositories never commit, services own transactions."""

from .audit_repository import AuditRepository
from .factory import RepositoryFactory
from .session_repository import SessionRepository

__all__ = ["AuditRepository", "RepositoryFactory", "SessionRepository"]
