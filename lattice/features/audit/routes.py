"""
Audit log API routes.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from lattice.core.lattice import LatticeCore
from lattice.features.audit.schemas import AuditLogListResponse, AuditLogResponse
from lattice.features.permissions.dependencies import get_lattice, require_route_permission


router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    actor_id: Optional[str] = None,
    context_id: Optional[str] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    lattice: LatticeCore = Depends(get_lattice),
    _reader_id: str = Depends(require_route_permission("audit", "read", scope="global"))
):
    """List audit logs, newest first."""
    entries, total = await lattice.audit.list_logs(
        actor_id=actor_id,
        context_id=context_id,
        action=action,
        resource_type=resource_type,
        limit=limit,
        offset=offset,
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(e) for e in entries],
        total=total,
        limit=limit,
        offset=offset,
    )
