"""
Permission catalog and direct user grants.

Permission scoping:
- Global: applies in every context
- Type-wide: applies in every context of one type
- Exact: applies in one context only

Usage:
    await permission_service.grant_to_user("user_123", "orders:read", ExactScope("org_456"))
"""
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lattice.core.database.engine import storage_errors
from lattice.core.errors import NotFoundError, ValidationError
from lattice.core.scope import GLOBAL, ExactScope, Scope
from lattice.core.validation import validate_permission_key, validate_string
from lattice.features.audit.service import AuditService
from lattice.features.contexts.models import Context
from lattice.features.permissions.effective import scope_equals
from lattice.features.permissions.models import Permission, UserPermission
from lattice.utils import get_logger


log = get_logger(__name__)


async def ensure_permission(session: AsyncSession, key: str, label: Optional[str] = None) -> Permission:
    """
    Get the permission row for `key`, creating it when missing.

    Must be called inside an open session; the caller commits.
    """
    result = await session.execute(select(Permission).where(Permission.key == key))
    permission = result.scalars().first()
    if permission is None:
        permission = Permission(key=key, label=label or key)
        session.add(permission)
        await session.flush()
        log.info(f"Created permission: {key}")
    return permission


async def ensure_context_exists(session: AsyncSession, scope: Scope) -> None:
    if isinstance(scope, ExactScope) and await session.get(Context, scope.id) is None:
        raise NotFoundError("Context", scope.id)


class PermissionService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], audit: AuditService):
        self.session_factory = session_factory
        self.audit = audit

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def create_permission(self, key: str, label: Optional[str] = None) -> Permission:
        """Create a permission, or return the existing one with the same key."""
        key = validate_permission_key(key)
        async with self.session_factory() as session:
            with storage_errors("create permission"):
                permission = await ensure_permission(session, key, label)
                await session.commit()
                await session.refresh(permission)
        return permission

    async def get_permission(self, key: str) -> Optional[Permission]:
        async with self.session_factory() as session:
            with storage_errors("get permission"):
                result = await session.execute(select(Permission).where(Permission.key == key))
                return result.scalars().first()

    async def list_permissions(self, plugin: Optional[str] = None) -> List[Permission]:
        stmt = select(Permission).order_by(Permission.key)
        if plugin:
            stmt = stmt.where(Permission.plugin == plugin)
        async with self.session_factory() as session:
            with storage_errors("list permissions"):
                result = await session.execute(stmt)
                return list(result.scalars().all())

    async def update_label(self, key: str, label: str) -> Permission:
        """
        Change a permission's label, the only mutable field.

        Raises:
            NotFoundError: if no permission has this key
        """
        label = validate_string(label, "label")
        async with self.session_factory() as session:
            with storage_errors("update permission"):
                result = await session.execute(select(Permission).where(Permission.key == key))
                permission = result.scalars().first()
                if permission is None:
                    raise NotFoundError("Permission", key)
                permission.label = label
                await session.commit()
                await session.refresh(permission)
        return permission

    # ------------------------------------------------------------------
    # Direct grants
    # ------------------------------------------------------------------

    async def grant_to_user(
        self,
        user_id: str,
        permission_key: str,
        scope: Scope = GLOBAL,
        actor_id: Optional[str] = None
    ) -> UserPermission:
        """
        Grant a permission directly to a user.

        The permission row is created on first grant. Granting an existing
        (user, permission, scope) combination returns the
        existing grant.

        Raises:
            ValidationError: if user_id is blank or the key is malformed
            NotFoundError: if an exact scope references an unknown context
        """
        user_id = validate_string(user_id, "user id")
        permission_key = validate_permission_key(permission_key)

        async with self.session_factory() as session:
            with storage_errors("grant permission"):
                await ensure_context_exists(session, scope)
                permission = await ensure_permission(session, permission_key)

                result = await session.execute(
                    select(UserPermission).where(
                        UserPermission.user_id == user_id,
                        UserPermission.permission_id == permission.id,
                        UserPermission.scope_key == scope.key,
                    )
                )
                grant = result.scalars().first()
                if grant is None:
                    grant = UserPermission(user_id=user_id, permission_id=permission.id)
                    grant.apply_scope(scope)
                    session.add(grant)
                    await session.commit()
                    await session.refresh(grant)

        await self.audit.log(
            "permission.user.granted",
            actor_id=actor_id,
            target_user_id=user_id,
            context_id=scope.context_id,
            resource_type="permission",
            resource_id=permission_key,
            details={"permission_key": permission_key, "context_type": scope.context_type},
        )
        return grant

    async def bulk_grant_to_user(
        self,
        user_id: str,
        grants: Sequence[Tuple[str, Scope]],
        actor_id: Optional[str] = None
    ) -> List[UserPermission]:
        """
        Grant several (permission, scope) pairs to a user in one transaction.

        Either every grant is stored or none is: an unknown context or a
        storage failure on any entry rolls back the whole batch, including
        permission rows created for earlier entries.

        Returns:
            One grant per entry, in input order; repeated entries share a grant

        Raises:
            ValidationError: if grants is empty, user_id is blank or any key is malformed
            NotFoundError: if an exact scope references an unknown context
        """
        user_id = validate_string(user_id, "user id")
        if not grants:
            raise ValidationError("At least one grant is required", {"field": "grants"})
        entries = [(validate_permission_key(key), scope) for key, scope in grants]

        granted: Dict[Tuple[str, str], UserPermission] = {}
        async with self.session_factory() as session:
            with storage_errors("bulk grant permissions"):
                async with session.begin():
                    for key, scope in entries:
                        if (key, scope.key) in granted:
                            continue
                        await ensure_context_exists(session, scope)
                        permission = await ensure_permission(session, key)

                        result = await session.execute(
                            select(UserPermission).where(
                                UserPermission.user_id == user_id,
                                UserPermission.permission_id == permission.id,
                                UserPermission.scope_key == scope.key,
                            )
                        )
                        grant = result.scalars().first()
                        if grant is None:
                            grant = UserPermission(user_id=user_id, permission_id=permission.id)
                            grant.apply_scope(scope)
                            session.add(grant)
                            await session.flush()
                        granted[(key, scope.key)] = grant

                for grant in granted.values():
                    await session.refresh(grant)

        await self.audit.log(
            "permission.user.bulk_granted",
            actor_id=actor_id,
            target_user_id=user_id,
            resource_type="permission",
            details={
                "grants": [
                    {"permission_key": key, "context_id": scope.context_id, "context_type": scope.context_type}
                    for key, scope in entries
                ],
            },
        )
        return [granted[(key, scope.key)] for key, scope in entries]

    async def revoke_from_user(
        self,
        user_id: str,
        permission_key: str,
        scope: Scope = GLOBAL,
        actor_id: Optional[str] = None
    ) -> bool:
        """
        Revoke a direct grant.

        Revoking something that was never granted is a successful no-op.

        Returns:
            True if a grant was removed
        """
        user_id = validate_string(user_id, "user id")
        permission_key = validate_permission_key(permission_key)

        async with self.session_factory() as session:
            with storage_errors("revoke permission"):
                result = await session.execute(select(Permission.id).where(Permission.key == permission_key))
                permission_id = result.scalars().first()
                if permission_id is None:
                    return False

                deleted = await session.execute(
                    delete(UserPermission).where(
                        UserPermission.user_id == user_id,
                        UserPermission.permission_id == permission_id,
                        scope_equals(UserPermission, scope),
                    )
                )
                await session.commit()

        removed = deleted.rowcount > 0
        await self.audit.log(
            "permission.user.revoked",
            success=True,
            actor_id=actor_id,
            target_user_id=user_id,
            context_id=scope.context_id,
            resource_type="permission",
            resource_id=permission_key,
            details={"permission_key": permission_key, "context_type": scope.context_type, "removed": removed},
        )
        return removed

    async def list_user_permissions(self, user_id: str, scope: Scope = GLOBAL) -> List[Permission]:
        """
        Permissions granted directly to a user in exactly this scope.

        Unlike the effective resolver, a context scope does not include global
        or type-wide grants, and role grants are never included.
        """
        user_id = validate_string(user_id, "user id")
        stmt = (
            select(Permission)
            .join(UserPermission, UserPermission.permission_id == Permission.id)
            .where(UserPermission.user_id == user_id, scope_equals(UserPermission, scope))
            .order_by(Permission.key)
        )

        async with self.session_factory() as session:
            with storage_errors("list user permissions"):
                result = await session.execute(stmt)
                return list(result.scalars().all())
