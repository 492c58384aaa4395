# backend/tutorsched/api/dependencies/tenancy.py
"""
Tenant and actor resolution.

Authentication and tenant resolution happen upstream (gateway or auth
middleware); this module only reads the identifiers it forwards.
"""

from typing import Optional

from fastapi import Header, HTTPException, status


def get_tenant_id(x_tenant_id: Optional[str] = Header(default=None)) -> str:
    tenant_id = (x_tenant_id or "").strip()
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "X-Tenant-ID header is required", "code": "TENANT_REQUIRED"},
        )
    return tenant_id


def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> Optional[str]:
    actor_id = (x_actor_id or "").strip()
    return actor_id or None
