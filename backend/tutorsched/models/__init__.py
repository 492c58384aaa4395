"""
Database models for the scheduling engine.

- TutoringSession: persisted session rows (the "sessions" table)
- AuditLog: audit trail for commits, resets and bulk transitions
"""

from .audit_log import AuditLog
from .session import TutoringSession

__all__ = ["AuditLog", "TutoringSession"]
