"""
Role management API routes.

Roles are addressed by key or by name.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, status

from lattice.core.errors import ForbiddenError, NotFoundError
from lattice.core.lattice import LatticeCore
from lattice.core.route_policy import expand_template
from lattice.core.scope import ScopeHint
from lattice.features.permissions.dependencies import get_lattice, get_route_policy, require_route_permission
from lattice.features.roles.schemas import (
    AssignPermissionToRole,
    AssignRoleToUser,
    RoleCreate,
    RolePermissionResponse,
    RoleResponse,
    RoleWithPermissions,
    UserRoleResponse,
)
from lattice.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Role Routes
# ============================================================================

@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("roles", "create"))
):
    """Create a role, or return the existing role with the same key."""
    return await lattice.roles.create_role(role.name, role.context_type, key=role.key, actor_id=actor_id)


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    context_type: Optional[str] = None,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("roles", "list"))
):
    return await lattice.roles.list_roles(context_type=context_type)


@router.get("/user/{user_id}", response_model=List[UserRoleResponse])
async def list_user_roles(
    user_id: str,
    context_id: Optional[str] = None,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("roles", "list"))
):
    """Roles assigned to a user globally or type-wide, plus those inside context_id."""
    return await lattice.roles.list_user_roles(user_id, context_id=context_id)


@router.get("/{role}", response_model=RoleWithPermissions)
async def get_role(
    role: str,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("roles", "get"))
):
    """Get a role with its permission grants."""
    db_role = await lattice.roles.get_role(role)
    if db_role is None:
        raise NotFoundError("Role", role)

    permissions = await lattice.roles.list_role_permissions(db_role.key)
    return RoleWithPermissions(
        **RoleResponse.model_validate(db_role).model_dump(),
        permissions=[RolePermissionResponse(**p) for p in permissions],
    )


@router.delete("/{role}")
async def delete_role(
    role: str,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("roles", "delete"))
):
    """Delete a role with all of its grants and assignments."""
    deleted = await lattice.roles.delete_role(role, actor_id=actor_id)
    return {"ok": True, "deleted": deleted}


# ============================================================================
# User Assignment Routes
# ============================================================================

@router.post("/{role}/assign")
async def assign_role_to_user(
    role: str,
    assignment: AssignRoleToUser,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("roles", "assign"))
):
    await lattice.roles.assign_role_to_user(role, assignment.user_id, assignment.scope, actor_id=actor_id)
    return {"ok": True}


@router.post("/{role}/remove")
async def remove_role_from_user(
    role: str,
    assignment: AssignRoleToUser,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("roles", "remove"))
):
    removed = await lattice.roles.remove_role_from_user(role, assignment.user_id, assignment.scope, actor_id=actor_id)
    return {"ok": True, "removed": removed}


# ============================================================================
# Role Permission Routes
# ============================================================================

async def ensure_can_change_role_permissions(
    request: Request,
    lattice: LatticeCore,
    actor_id: str,
    role: str,
    permission_key: str,
    grant: bool
) -> None:
    """
    Check the actor may manage roles of the role's context type and may grant
    (or revoke) the permission there, both type-wide.

    Raises:
        NotFoundError: if the role does not exist
        ForbiddenError: if either check is denied
    """
    db_role = await lattice.roles.get_role(role)
    if db_role is None:
        raise NotFoundError("Role", role)

    policy = get_route_policy(request).roles
    templates = [policy.role_manage, policy.permission_grant if grant else policy.permission_revoke]
    for template in templates:
        required = expand_template(template, db_role.context_type, permission_key)
        allowed = await lattice.check_access(
            actor_id,
            required,
            scope=ScopeHint.TYPE_WIDE,
            context_type=db_role.context_type,
        )
        if not allowed:
            raise ForbiddenError(
                f"Missing {required} for {db_role.context_type} roles",
                {"permission": required, "context_type": db_role.context_type},
            )


@router.post("/{role}/permissions/add")
async def add_permission_to_role(
    request: Request,
    role: str,
    grant: AssignPermissionToRole,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("roles", "add_perm"))
):
    await ensure_can_change_role_permissions(request, lattice, actor_id, role, grant.permission_key, grant=True)
    await lattice.roles.add_permission_to_role(role, grant.permission_key, grant.scope, actor_id=actor_id)
    return {"ok": True}


@router.post("/{role}/permissions/remove")
async def remove_permission_from_role(
    request: Request,
    role: str,
    grant: AssignPermissionToRole,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("roles", "remove_perm"))
):
    await ensure_can_change_role_permissions(request, lattice, actor_id, role, grant.permission_key, grant=False)
    removed = await lattice.roles.remove_permission_from_role(
        role,
        grant.permission_key,
        grant.scope,
        actor_id=actor_id,
    )
    return {"ok": True, "removed": removed}
