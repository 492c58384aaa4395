# backend/tutorsched/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.bulk_operation_service import BulkOperationService
from ...services.schedule_generation_service import ScheduleGenerationService
from ...database import get_db


def get_schedule_generation_service(db: Session = Depends(get_db)) -> ScheduleGenerationService:
    """Get schedule generation service instance."""
    return ScheduleGenerationService(db)


def get_bulk_operation_service(db: Session = Depends(get_db)) -> BulkOperationService:
    """Get bulk operation service instance."""
    return BulkOperationService(db)
