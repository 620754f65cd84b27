"""
Context management API routes.

Routes addressing one context check the caller's permission inside that
context, so an exact grant on the context is enough to manage it.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from lattice.core.errors import NotFoundError
from lattice.core.lattice import LatticeCore
from lattice.features.contexts.schemas import (
    ContextCreate,
    ContextListResponse,
    ContextMemberResponse,
    ContextResponse,
    ContextUpdate,
    ContextUserAdd,
)
from lattice.features.permissions.dependencies import get_lattice, require_route_permission
from lattice.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.post("", response_model=ContextResponse, status_code=status.HTTP_201_CREATED)
async def create_context(
    context: ContextCreate,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("contexts", "create"))
):
    """Create a context, or return the existing one with the same id."""
    return await lattice.contexts.create_context(context.id, context.type, name=context.name, actor_id=actor_id)


@router.get("", response_model=ContextListResponse)
async def list_contexts(
    type: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("contexts", "list"))
):
    contexts, total = await lattice.contexts.list_contexts(type=type, limit=limit, offset=offset)
    return ContextListResponse(
        items=[ContextResponse.model_validate(c) for c in contexts],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{context_id}", response_model=ContextResponse)
async def get_context(
    context_id: str,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("contexts", "get"))
):
    context = await lattice.contexts.get_context(context_id)
    if context is None:
        raise NotFoundError("Context", context_id)
    return context


@router.put("/{context_id}", response_model=ContextResponse)
async def update_context(
    context_id: str,
    context_update: ContextUpdate,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("contexts", "update"))
):
    return await lattice.contexts.update_context(
        context_id,
        name=context_update.name,
        type=context_update.type,
        actor_id=actor_id,
    )


@router.delete("/{context_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_context(
    context_id: str,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("contexts", "delete"))
):
    """Delete a context together with every grant and assignment bound to it."""
    await lattice.contexts.delete_context(context_id, actor_id=actor_id)


# ============================================================================
# Membership
# ============================================================================

@router.post("/{context_id}/users", response_model=ContextMemberResponse, status_code=status.HTTP_201_CREATED)
async def add_user_to_context(
    context_id: str,
    body: ContextUserAdd,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("contexts", "add_user"))
):
    return await lattice.contexts.add_user_to_context(context_id, body.user_id, actor_id=actor_id)


@router.delete("/{context_id}/users/{user_id}")
async def remove_user_from_context(
    context_id: str,
    user_id: str,
    lattice: LatticeCore = Depends(get_lattice),
    actor_id: str = Depends(require_route_permission("contexts", "remove_user"))
):
    """Removing a user who is not a member succeeds with removed=false."""
    removed = await lattice.contexts.remove_user_from_context(context_id, user_id, actor_id=actor_id)
    return {"ok": True, "removed": removed}


@router.get("/{context_id}/users", response_model=List[ContextMemberResponse])
async def list_context_users(
    context_id: str,
    lattice: LatticeCore = Depends(get_lattice),
    _actor_id: str = Depends(require_route_permission("contexts", "list_users"))
):
    return await lattice.contexts.list_context_users(context_id)
