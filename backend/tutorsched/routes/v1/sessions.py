# backend/tutorsched/routes/v1/sessions.py
"""
Session scheduling routes - API v1

Versioned endpoints under /api/v1/sessions.
All business logic delegated to ScheduleGenerationService and
BulkOperationService.

Endpoints:
    POST /generate - Generate a term's recurring sessions
    POST /generate/preview - Dry-run generation with sample occurrences
    POST /bulk-cancel - Cancel selected sessions with a reason code
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import (
    get_actor_id,
    get_bulk_operation_service,
    get_schedule_generation_service,
    get_tenant_id,
)
from ...core.exceptions import DomainException
from ...schemas.session_generation import (
    BulkCancelRequest,
    BulkCancelResponse,
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    PreviewScheduleResponse,
)
from ...services.bulk_operation_service import BulkOperationService
from ...services.schedule_generation_service import (
    GenerationRequest,
    ScheduleGenerationService,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sessions-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _to_generation_request(
    payload: GenerateScheduleRequest, tenant_id: str, actor_id: Optional[str]
) -> GenerationRequest:
    return GenerationRequest(
        tenant_id=tenant_id,
        term=payload.term.to_domain(),
        bindings=[rule.to_binding() for rule in payload.rules],
        environment=payload.environment,
        exclusions=frozenset(payload.exclude_dates),
        dry_run=payload.dry_run,
        replace_existing_in_range=payload.replace_existing_in_range,
        confirm_production=payload.confirm_production,
        actor_id=actor_id,
    )


@router.post("/generate", response_model=GenerateScheduleResponse)
async def generate_sessions(
    payload: GenerateScheduleRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ScheduleGenerationService = Depends(get_schedule_generation_service),
) -> GenerateScheduleResponse:
    """
    Generate a term's sessions from recurrence rules.

    Safe to repeat: sessions that already exist are reported as skipped.
    """
    try:
        result = await asyncio.to_thread(
            service.generate_schedule, _to_generation_request(payload, tenant_id, actor_id)
        )
        return GenerateScheduleResponse.from_result(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/generate/preview", response_model=PreviewScheduleResponse)
async def preview_sessions(
    payload: GenerateScheduleRequest,
    sample_limit: Optional[int] = Query(default=None, ge=0, le=100),
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ScheduleGenerationService = Depends(get_schedule_generation_service),
) -> PreviewScheduleResponse:
    """Report what /generate would do without writing anything."""
    try:
        preview = await asyncio.to_thread(
            service.preview, _to_generation_request(payload, tenant_id, actor_id), sample_limit
        )
        return PreviewScheduleResponse.from_preview(preview)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bulk-cancel", response_model=BulkCancelResponse)
async def bulk_cancel_sessions(
    payload: BulkCancelRequest,
    tenant_id: str = Depends(get_tenant_id),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: BulkOperationService = Depends(get_bulk_operation_service),
) -> BulkCancelResponse:
    """Cancel the selected sessions; missing or already-final sessions are not counted."""
    try:
        result = await asyncio.to_thread(
            service.bulk_transition,
            tenant_id,
            payload.session_ids,
            payload.reason_code,
            payload.environment,
            payload.confirm_production,
            actor_id,
        )
        return BulkCancelResponse(transitioned_count=result.transitioned_count)
    except DomainException as e:
        handle_domain_exception(e)
