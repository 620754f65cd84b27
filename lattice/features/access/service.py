"""
Access decisions: RBAC gate followed by ABAC refinement.

A check is granted only when the user's effective permissions cover the
required permission AND the ABAC policies for (permission, context type) do
not deny it. Every failure along the way denies.
"""
from typing import Optional, Union

from lattice.core.scope import ContextRef, ScopeHint
from lattice.features.audit.service import AuditService
from lattice.features.permissions.effective import EffectivePermissionResolver
from lattice.features.permissions.wildcard import is_allowed
from lattice.features.policies.evaluator import AbacEvaluator
from lattice.utils import get_logger


log = get_logger(__name__)


UNKNOWN_RESOURCE = "unknown"


def resolve_lookup_context(
    context: Optional[ContextRef],
    scope: Optional[Union[ScopeHint, str]] = None,
    context_type: Optional[str] = None
) -> Optional[ContextRef]:
    """
    Pick the context the resolver queries for a scope hint.

    global ignores the context entirely; type-wide queries the type without an
    id when a type is given; anything else, unknown hints included, uses the
    context as passed.
    """
    try:
        hint = ScopeHint(scope) if scope is not None else None
    except ValueError:
        log.warning(f"Unknown scope hint {scope!r}, using the supplied context")
        hint = None
    if hint == ScopeHint.GLOBAL:
        return None
    if hint == ScopeHint.TYPE_WIDE:
        return ContextRef(context_type) if context_type else context
    return context


class AccessService:
    def __init__(
        self,
        resolver: EffectivePermissionResolver,
        evaluator: AbacEvaluator,
        audit: Optional[AuditService] = None
    ):
        self.resolver = resolver
        self.evaluator = evaluator
        self.audit = audit

    async def check_access(
        self,
        user_id: str,
        permission: str,
        context: Optional[ContextRef] = None,
        scope: Optional[Union[ScopeHint, str]] = None,
        context_type: Optional[str] = None
    ) -> bool:
        """
        Decide whether `user_id` may exercise `permission` in `context`.

        Never raises: storage and evaluator failures are logged and deny.
        """
        lookup = None
        try:
            lookup = resolve_lookup_context(context, scope, context_type)
            effective = await self.resolver.resolve(user_id, lookup)

            if not is_allowed(permission, effective):
                log.debug(f"RBAC denied {permission} for user {user_id} in {lookup}")
                allowed = False
            else:
                resource = (lookup.type if lookup else None) or context_type or UNKNOWN_RESOURCE
                allowed = await self.evaluator.evaluate(
                    action=permission,
                    resource=resource,
                    resource_id=lookup.id if lookup else None,
                    user_id=user_id,
                )
                log.debug(f"ABAC {'permitted' if allowed else 'denied'} {permission} for user {user_id} on {resource}")
        except Exception as e:
            log.error(f"Access check failed for user {user_id}, permission {permission}: {e}", exc_info=True)
            allowed = False

        await self._audit_decision(user_id, permission, lookup or context, allowed)
        return allowed

    async def _audit_decision(
        self,
        user_id: str,
        permission: str,
        context: Optional[ContextRef],
        allowed: bool
    ) -> None:
        if self.audit is None:
            return
        try:
            await self.audit.log_permission_check(
                actor_id=user_id,
                context_id=context.id if context else None,
                permission=permission,
                success=allowed,
            )
        except Exception as e:
            log.warning(f"Failed to audit permission check {permission} for user {user_id}: {e}")
