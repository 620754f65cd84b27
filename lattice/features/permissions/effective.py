"""
Effective permission resolution.

Computes the set of permission keys a user holds in a context, combining
direct grants and role grants under the three-tier scope model:

- global grants apply everywhere
- type-wide grants apply in every context of their type
- exact grants apply in their context only
"""
from typing import Optional, Set
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lattice.core.database.engine import storage_errors
from lattice.core.scope import ContextRef, Scope
from lattice.features.permissions.models import Permission, UserPermission
from lattice.features.roles.models import RolePermission, UserRole
from lattice.utils import get_logger


log = get_logger(__name__)


def scoped_grant_filter(model, context: Optional[ContextRef]):
    """
    WHERE clause matching grants visible in `context`.

    Global rows always match; type-wide rows match when the context has a
    type; exact rows match when the context has an id.
    """
    clauses = [and_(model.context_id.is_(None), model.context_type.is_(None))]
    if context is not None:
        if context.type:
            clauses.append(and_(model.context_id.is_(None), model.context_type == context.type))
        if context.id:
            clauses.append(model.context_id == context.id)
    return or_(*clauses)


def scope_equals(model, scope: Scope):
    """WHERE clause matching grants stored with exactly this scope."""
    return and_(
        model.context_id.is_(None) if scope.context_id is None else model.context_id == scope.context_id,
        model.context_type.is_(None) if scope.context_type is None else model.context_type == scope.context_type,
    )


class EffectivePermissionResolver:
    """
    Resolve effective permissions from the grant tables.

    Read-only; each call uses its own session so concurrent calls need no
    coordination. Results are not cached.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def resolve(self, user_id: str, context: Optional[ContextRef] = None) -> Set[str]:
        """
        Get all permission keys a user holds in a context.

        Includes:
        1. Direct user permissions (global, type-wide, exact)
        2. Permissions of roles assigned globally or in the exact context

        Raises:
            StorageError: on any database failure
        """
        async with self.session_factory() as session:
            with storage_errors("resolve effective permissions"):
                direct = await self._direct_permission_keys(session, user_id, context)
                role_ids = await self._assigned_role_ids(session, user_id, context)
                via_roles = await self._role_permission_keys(session, role_ids, context)

        effective = direct | via_roles
        log.debug(
            f"Resolved {len(effective)} permissions for user {user_id} in {context} "
            f"({len(direct)} direct, {len(role_ids)} roles)"
        )
        return effective

    async def _direct_permission_keys(
        self,
        session: AsyncSession,
        user_id: str,
        context: Optional[ContextRef]
    ) -> Set[str]:
        stmt = (
            select(Permission.key)
            .join(UserPermission, UserPermission.permission_id == Permission.id)
            .where(
                UserPermission.user_id == user_id,
                scoped_grant_filter(UserPermission, context),
            )
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def _assigned_role_ids(
        self,
        session: AsyncSession,
        user_id: str,
        context: Optional[ContextRef]
    ) -> Set[str]:
        # Assignments are matched by context id only; a role's type is checked on assignment
        clauses = [UserRole.context_id.is_(None)]
        if context is not None and context.id:
            clauses.append(UserRole.context_id == context.id)

        stmt = select(UserRole.role_id).where(UserRole.user_id == user_id, or_(*clauses)).distinct()
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def _role_permission_keys(
        self,
        session: AsyncSession,
        role_ids: Set[str],
        context: Optional[ContextRef]
    ) -> Set[str]:
        if not role_ids:
            return set()

        stmt = (
            select(Permission.key)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(
                RolePermission.role_id.in_(role_ids),
                scoped_grant_filter(RolePermission, context),
            )
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())
