"""
Permission API routes.

Provides endpoints for the permission catalog, direct user grants, effective
permission lookups and access checks. Every route requires global scope: the
target context is passed as `context_id` / `context_type` in the body or query,
never as the caller's own context.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, status

from lattice.core import config
from lattice.core.errors import ValidationError
from lattice.core.limiter import limiter
from lattice.core.lattice import LatticeCore
from lattice.core.scope import ContextRef, scope_from_columns
from lattice.features.permissions.dependencies import get_lattice, require_route_permission
from lattice.features.permissions.schemas import (
    BulkGrantToUser,
    EffectivePermissionsResponse,
    GrantPermissionToUser,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionLabelUpdate,
    PermissionResponse,
    UserPermissionGrantResponse,
)
from lattice.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Catalog
# ============================================================================

@router.get("", response_model=List[PermissionResponse])
async def list_permissions(
    plugin: Optional[str] = None,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("permissions", "read", scope="global"))
):
    """List persisted permissions, optionally only those of one plugin."""
    return await lattice.permissions.list_permissions(plugin=plugin)


@router.get("/registry", response_model=List[PermissionResponse])
async def list_registered_permissions(
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("permissions", "read", scope="global"))
):
    """List the in-memory permission registry."""
    return [PermissionResponse(key=p.key, label=p.label, plugin=p.plugin) for p in lattice.registry.list()]


@router.patch("/{key}", response_model=PermissionResponse)
async def update_permission_label(
    key: str,
    body: PermissionLabelUpdate,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("permissions", "grant_user", scope="global"))
):
    return await lattice.permissions.update_label(key, body.label)


# ============================================================================
# Direct Grants
# ============================================================================

@router.post("/user/grant", response_model=UserPermissionGrantResponse, status_code=status.HTTP_201_CREATED)
async def grant_permission_to_user(
    body: GrantPermissionToUser,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("permissions", "grant_user", scope="global"))
):
    """Grant a permission directly to a user (global, type-wide or exact)."""
    grant = await lattice.permissions.grant_to_user(
        body.user_id,
        body.permission_key,
        body.scope,
        actor_id=actor_id,
    )
    return UserPermissionGrantResponse(
        user_id=grant.user_id,
        permission_key=body.permission_key,
        context_id=grant.context_id,
        context_type=grant.context_type,
        created_at=grant.created_at,
    )


@router.post(
    "/user/bulk-grant",
    response_model=List[UserPermissionGrantResponse],
    status_code=status.HTTP_201_CREATED
)
async def bulk_grant_permissions_to_user(
    body: BulkGrantToUser,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("permissions", "grant_user", scope="global"))
):
    """Grant several permissions at once. A failing entry rolls back the whole batch."""
    grants = await lattice.permissions.bulk_grant_to_user(
        body.user_id,
        [(item.permission_key, item.scope) for item in body.grants],
        actor_id=actor_id,
    )
    return [
        UserPermissionGrantResponse(
            user_id=grant.user_id,
            permission_key=item.permission_key,
            context_id=grant.context_id,
            context_type=grant.context_type,
            created_at=grant.created_at,
        )
        for item, grant in zip(body.grants, grants)
    ]


@router.post("/user/revoke")
async def revoke_permission_from_user(
    body: GrantPermissionToUser,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("permissions", "revoke_user", scope="global"))
):
    """Revoke a direct grant. Revoking a missing grant succeeds with removed=false."""
    removed = await lattice.permissions.revoke_from_user(
        body.user_id,
        body.permission_key,
        body.scope,
        actor_id=actor_id,
    )
    return {"ok": True, "removed": removed}


@router.get("/user/{user_id}", response_model=List[PermissionResponse])
async def list_user_permissions(
    user_id: str,
    context_id: Optional[str] = None,
    context_type: Optional[str] = None,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("permissions", "grant_user", scope="global"))
):
    """Permissions granted directly to a user in exactly one scope."""
    if context_id and context_type:
        raise ValidationError("Provide either context_id or context_type, not both")
    return await lattice.permissions.list_user_permissions(user_id, scope_from_columns(context_id, context_type))


@router.get("/user/{user_id}/effective", response_model=EffectivePermissionsResponse)
async def get_effective_permissions(
    user_id: str,
    context_id: Optional[str] = None,
    context_type: Optional[str] = None,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("permissions", "grant_user", scope="global"))
):
    """
    Every permission the user holds in a context, from direct grants and roles.

    When only context_id is given, the context's type is looked up so type-wide
    grants are included.
    """
    if context_id and not context_type:
        context = await lattice.contexts.get_context(context_id)
        context_type = context.type if context else None

    lookup = ContextRef(context_type, context_id) if (context_id or context_type) else None
    permissions = await lattice.resolver.resolve(user_id, lookup)
    return EffectivePermissionsResponse(
        user_id=user_id,
        context_id=context_id,
        context_type=context_type,
        permissions=sorted(permissions),
    )


# ============================================================================
# Access Check
# ============================================================================

@router.post("/check", response_model=PermissionCheckResponse)
@limiter.limit(config.CHECK_RATE_LIMIT)
async def check_permission(
    request: Request,
    body: PermissionCheckRequest,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("permissions", "check", scope="global"))
):
    """Run a full RBAC + ABAC decision for another user."""
    context = None
    if body.context_id:
        context = ContextRef(body.context_type or "unknown", body.context_id)
    allowed = await lattice.check_access(
        body.user_id,
        body.permission,
        context,
        scope=body.scope,
        context_type=body.context_type,
    )
    return PermissionCheckResponse(allowed=allowed)
