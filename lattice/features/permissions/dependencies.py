"""
FastAPI dependencies for route protection.

Authentication is left to the embedding application: the acting user id is
read from the `x-user-id` header, which an upstream gateway or auth middleware
is expected to set.
"""
from typing import Callable, Optional, Union
from fastapi import HTTPException, Request, status

from lattice.core.lattice import LatticeCore
from lattice.core.route_policy import DEFAULT_ROUTE_POLICY, RoutePermissionPolicy
from lattice.core.scope import ContextRef, ScopeHint
from lattice.utils import get_logger


log = get_logger(__name__)


USER_ID_HEADER = "x-user-id"
CONTEXT_ID_HEADER = "x-context-id"
CONTEXT_TYPE_HEADER = "x-context-type"
UNKNOWN_CONTEXT_TYPE = "unknown"


def get_lattice(request: Request) -> LatticeCore:
    """The LatticeCore bound to the application by create_app."""
    return request.app.state.lattice


def get_route_policy(request: Request) -> RoutePermissionPolicy:
    """The RoutePermissionPolicy bound by create_app, or the defaults."""
    return getattr(request.app.state, "route_policy", DEFAULT_ROUTE_POLICY)


def get_user_id_header(request: Request) -> str:
    """
    Extract the acting user id for rate limiting.
    Used with slowapi Limiter.
    """
    return request.headers.get(USER_ID_HEADER) or "anonymous"


def get_actor_id(request: Request) -> Optional[str]:
    return request.headers.get(USER_ID_HEADER) or None


def _first_value(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def require_permission(
    permission: Union[str, Callable[[Request], str]],
    scope: Optional[Union[ScopeHint, str]] = None,
    context_type: Optional[str] = None,
    context_required: bool = False
):
    """
    FastAPI dependency to require a permission.

    The context is taken from the `context_id` / `context_type` path params,
    then the `x-context-id` / `x-context-type` headers, then the `contextId` /
    `contextType` query params.

    Usage:
        @router.post("/roles")
        async def create_role(
            actor_id: str = Depends(require_permission("roles:create"))
        ):
            pass

    Args:
        permission: Required permission key, or a callable computing it from
            the request
        scope: Optional scope hint (exact, global, type-wide)
        context_type: Context type used when the request does not carry one
        context_required: Reject requests without a context id

    Returns:
        Dependency function that returns the acting user id if allowed

    Raises:
        HTTPException: 401 without a user id, 400 on a missing context
            for the scope, 403 if denied
    """
    hint = ScopeHint(scope) if scope is not None else None

    async def permission_dependency(request: Request) -> str:
        required = permission(request) if callable(permission) else permission
        user_id = request.headers.get(USER_ID_HEADER)
        context_id = _first_value(
            request.path_params.get("context_id"),
            request.headers.get(CONTEXT_ID_HEADER),
            request.query_params.get("contextId"),
        )
        request_context_type = _first_value(
            request.path_params.get("context_type"),
            request.headers.get(CONTEXT_TYPE_HEADER),
            request.query_params.get("contextType"),
        )
        effective_type = request_context_type or context_type

        if not user_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

        if context_required and not context_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Context required")

        if hint == ScopeHint.GLOBAL and (context_id or effective_type):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="This operation requires global scope"
            )

        if hint == ScopeHint.TYPE_WIDE and not effective_type:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Context type required for type-wide operation"
            )

        if hint == ScopeHint.EXACT and not context_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Context ID required for exact scope operation"
            )

        context = ContextRef(request_context_type or UNKNOWN_CONTEXT_TYPE, context_id) if context_id else None
        lattice = get_lattice(request)
        allowed = await lattice.check_access(
            user_id,
            required,
            context,
            scope=hint,
            context_type=effective_type,
        )
        if not allowed:
            log.info(f"Permission denied: {required} for user {user_id} in context {context_id}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

        return user_id

    return permission_dependency


def require_route_permission(
    section: str,
    action: str,
    scope: Optional[Union[ScopeHint, str]] = None,
    context_type: Optional[str] = None,
    context_required: bool = False
):
    """
    Like require_permission, with the key looked up in the application's
    RoutePermissionPolicy at request time.

    Usage:
        @router.post("/roles")
        async def create_role(
            actor_id: str = Depends(require_route_permission("roles", "create"))
        ):
            pass
    """
    # Unknown section / action names fail at import time
    DEFAULT_ROUTE_POLICY.permission_for(section, action)

    def route_permission(request: Request) -> str:
        return get_route_policy(request).permission_for(section, action)

    return require_permission(
        route_permission,
        scope=scope,
        context_type=context_type,
        context_required=context_required,
    )
