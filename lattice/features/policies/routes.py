"""
ABAC policy API routes.

Every route requires `policies:manage` in global scope.
"""
from typing import List
from fastapi import APIRouter, Depends, status

from lattice.core.errors import NotFoundError
from lattice.core.lattice import LatticeCore
from lattice.features.permissions.dependencies import get_lattice, require_route_permission
from lattice.features.policies.schemas import PolicyCreate, PolicyResponse, PolicyUpdate


router = APIRouter()

manage_policies = require_route_permission("policies", "manage", scope="global")


@router.post("", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
async def create_policy(
    policy: PolicyCreate,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(manage_policies)
):
    return await lattice.policies.create_policy(**policy.model_dump(), actor_id=actor_id)


@router.get("", response_model=List[PolicyResponse])
async def list_policies(
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(manage_policies)
):
    return await lattice.policies.list_policies()


@router.get("/{policy_id}", response_model=PolicyResponse)
async def get_policy(
    policy_id: str,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(manage_policies)
):
    policy = await lattice.policies.get_policy(policy_id)
    if policy is None:
        raise NotFoundError("Policy", policy_id)
    return policy


@router.put("/{policy_id}", response_model=PolicyResponse)
async def update_policy(
    policy_id: str,
    policy_update: PolicyUpdate,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(manage_policies)
):
    return await lattice.policies.update_policy(policy_id, **policy_update.model_dump(), actor_id=actor_id)


@router.delete("/{policy_id}")
async def delete_policy(
    policy_id: str,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(manage_policies)
):
    await lattice.policies.delete_policy(policy_id, actor_id=actor_id)
    return {"deleted": True}
