# backend/tutorsched/services/base.py
"""
Shared service plumbing: one session per service, commit/rollback at the
service boundary, and timing of public operations into Prometheus.

Repositories below never commit; a service method opens ``transaction()``
around every unit of work that must land atomically.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import PersistenceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """Base for the scheduling services; subclasses get a class-named logger."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit the block's work, or roll all of it back.

        Driver errors surface as PersistenceException; domain errors raised
        inside the block propagate unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Rolled back after database error: {str(e)}")
            raise PersistenceException(f"Database operation failed: {str(e)}", code="TRANSACTION_FAILED")
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """Time a service method and count its outcome under ``operation_name``."""

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    self._record_timing(operation_name, time.perf_counter() - started, error_type)

            return cast(F, wrapper)

        return decorator

    def _record_timing(self, operation_name: str, elapsed: float, error_type: Optional[str]) -> None:
        if elapsed > SLOW_OPERATION_SECONDS:
            self.logger.warning(f"Slow operation detected: {operation_name} took {elapsed:.2f}s")
        prometheus_metrics.record_service_operation(
            service=self.__class__.__name__,
            operation=operation_name,
            duration=elapsed,
            status="error" if error_type else "success",
            error_type=error_type,
        )

    def log_operation(self, operation: str, **context: Any) -> None:
        """Info-level line for a finished operation; ``context`` goes into the record's extras."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
