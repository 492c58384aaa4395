"""FastAPI dependencies."""

from ...database import get_db
from .services import get_bulk_operation_service, get_schedule_generation_service
from .tenancy import get_actor_id, get_tenant_id

__all__ = [
    "get_actor_id",
    "get_bulk_operation_service",
    "get_db",
    "get_schedule_generation_service",
    "get_tenant_id",
]
