# backend/tutorsched/core/exceptions.py
"""
Domain-specific exceptions for the scheduling engine.

Validation and forbidden-operation errors are raised before any mutation;
persistence errors surface store failures without internal retries. Batch
conflicts are reported as data, never as exceptions.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised for a malformed term, rule, time zone or selection."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenOperationException(DomainException):
    """Raised by the safety gate when a capability is not allowed in the target environment."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code=code or "FORBIDDEN_OPERATION", details=details)


class PersistenceException(DomainException):
    """Raised when the session store is unreachable or rejects a write outright. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict(), headers={"Retry-After": "2"})


class RepositoryException(Exception):
    """Data access failure inside a repository; services translate it into a DomainException."""
