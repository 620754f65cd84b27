"""
Role management service.

Roles are defined per context type. Users are assigned roles globally, for a
whole context type, or inside one context of the role's type.
"""
from typing import Dict, List, Optional
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lattice.core.database.base import generate_ulid
from lattice.core.database.engine import storage_errors
from lattice.core.errors import NotFoundError, ValidationError
from lattice.core.scope import GLOBAL, ExactScope, Scope, TypeWideScope
from lattice.core.validation import validate_permission_key, validate_string
from lattice.features.audit.service import AuditService
from lattice.features.contexts.models import Context
from lattice.features.permissions.effective import scope_equals
from lattice.features.permissions.models import Permission
from lattice.features.permissions.service import ensure_context_exists, ensure_permission
from lattice.features.roles.models import Role, RolePermission, UserRole
from lattice.utils import get_logger


log = get_logger(__name__)


async def find_role(session: AsyncSession, name_or_key: str) -> Optional[Role]:
    """Look a role up by key first, then by name."""
    result = await session.execute(select(Role).where(Role.key == name_or_key))
    role = result.scalars().first()
    if role is None:
        result = await session.execute(select(Role).where(Role.name == name_or_key).order_by(Role.id))
        role = result.scalars().first()
    return role


class RoleService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], audit: AuditService):
        self.session_factory = session_factory
        self.audit = audit

    async def create_role(
        self,
        name: str,
        context_type: str,
        key: Optional[str] = None,
        actor_id: Optional[str] = None
    ) -> Role:
        """
        Create a role, or return the existing role with the same key.

        Args:
            name: Display name
            context_type: Context type the role can be assigned in
            key: Unique key, generated when omitted

        Raises:
            ValidationError: if name or context_type is blank
        """
        name = validate_string(name, "role name")
        context_type = validate_string(context_type, "context type")
        key = validate_string(key, "role key") if key is not None else generate_ulid()

        async with self.session_factory() as session:
            with storage_errors("create role"):
                result = await session.execute(select(Role).where(Role.key == key))
                existing = result.scalars().first()
                if existing:
                    return existing

                role = Role(name=name, key=key, context_type=context_type)
                session.add(role)
                await session.commit()
                await session.refresh(role)

        await self.audit.log(
            "role.created",
            actor_id=actor_id,
            resource_type="role",
            resource_id=role.id,
            details={"name": name, "key": key, "context_type": context_type},
        )
        return role

    async def get_role(self, name_or_key: str) -> Optional[Role]:
        async with self.session_factory() as session:
            with storage_errors("get role"):
                return await find_role(session, name_or_key)

    async def list_roles(self, context_type: Optional[str] = None) -> List[Role]:
        stmt = select(Role).order_by(Role.name, Role.key)
        if context_type:
            stmt = stmt.where(Role.context_type == context_type)
        async with self.session_factory() as session:
            with storage_errors("list roles"):
                result = await session.execute(stmt)
                return list(result.scalars().all())

    async def delete_role(self, name_or_key: str, actor_id: Optional[str] = None) -> bool:
        """
        Delete a role together with its permission grants and user assignments.

        All three deletes run in one transaction. Deleting an unknown role is a
        no-op.

        Returns:
            True if a role was deleted
        """
        async with self.session_factory() as session:
            with storage_errors("delete role"):
                async with session.begin():
                    role = await find_role(session, name_or_key)
                    if role is None:
                        return False
                    await session.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
                    await session.execute(delete(UserRole).where(UserRole.role_id == role.id))
                    await session.execute(delete(Role).where(Role.id == role.id))

        await self.audit.log(
            "role.deleted",
            actor_id=actor_id,
            resource_type="role",
            resource_id=role.id,
            details={"name": role.name, "key": role.key},
        )
        return True

    # ------------------------------------------------------------------
    # User assignments
    # ------------------------------------------------------------------

    async def assign_role_to_user(
        self,
        role: str,
        user_id: str,
        scope: Scope = GLOBAL,
        actor_id: Optional[str] = None
    ) -> UserRole:
        """
        Assign a role (by key or name) to a user.

        Raises:
            NotFoundError: if the role or the exact-scope context is unknown
            ValidationError: if the context's type (or the type-wide scope's
                type) differs from the role's context type
        """
        user_id = validate_string(user_id, "user id")

        async with self.session_factory() as session:
            with storage_errors("assign role"):
                db_role = await find_role(session, role)
                if db_role is None:
                    raise NotFoundError("Role", role)

                if isinstance(scope, ExactScope):
                    context = await session.get(Context, scope.id)
                    if context is None:
                        raise NotFoundError("Context", scope.id)
                    if context.type != db_role.context_type:
                        raise ValidationError(
                            f"Role {db_role.name} has type {db_role.context_type}, "
                            f"cannot be assigned in {context.type} context",
                            {"role_type": db_role.context_type, "context_type": context.type},
                        )
                elif isinstance(scope, TypeWideScope) and scope.type != db_role.context_type:
                    raise ValidationError(
                        f"Role {db_role.name} has type {db_role.context_type}, "
                        f"cannot be assigned type-wide for {scope.type}",
                        {"role_type": db_role.context_type, "context_type": scope.type},
                    )

                result = await session.execute(
                    select(UserRole).where(
                        UserRole.user_id == user_id,
                        UserRole.role_id == db_role.id,
                        UserRole.scope_key == scope.key,
                    )
                )
                assignment = result.scalars().first()
                if assignment is None:
                    assignment = UserRole(user_id=user_id, role_id=db_role.id)
                    assignment.apply_scope(scope)
                    session.add(assignment)
                    await session.commit()
                    await session.refresh(assignment)

        await self.audit.log(
            "role.user.assigned",
            actor_id=actor_id,
            target_user_id=user_id,
            context_id=scope.context_id,
            resource_type="role",
            resource_id=db_role.id,
            details={"role_key": db_role.key, "context_type": scope.context_type},
        )
        return assignment

    async def remove_role_from_user(
        self,
        role: str,
        user_id: str,
        scope: Scope = GLOBAL,
        actor_id: Optional[str] = None
    ) -> bool:
        """
        Remove a role assignment. Removing a missing assignment is a no-op.

        Returns:
            True if an assignment was removed
        """
        user_id = validate_string(user_id, "user id")

        async with self.session_factory() as session:
            with storage_errors("remove role"):
                db_role = await find_role(session, role)
                if db_role is None:
                    return False
                deleted = await session.execute(
                    delete(UserRole).where(
                        UserRole.user_id == user_id,
                        UserRole.role_id == db_role.id,
                        scope_equals(UserRole, scope),
                    )
                )
                await session.commit()

        removed = deleted.rowcount > 0
        await self.audit.log(
            "role.user.removed",
            actor_id=actor_id,
            target_user_id=user_id,
            context_id=scope.context_id,
            resource_type="role",
            resource_id=db_role.id,
            details={"role_key": db_role.key, "removed": removed},
        )
        return removed

    async def list_user_roles(self, user_id: str, context_id: Optional[str] = None) -> List[Dict[str, Optional[str]]]:
        """
        Roles assigned to a user globally / type-wide, plus those in `context_id`.
        """
        clauses = [UserRole.context_id.is_(None)]
        if context_id:
            clauses.append(UserRole.context_id == context_id)
        stmt = (
            select(UserRole)
            .where(UserRole.user_id == user_id, or_(*clauses))
            .order_by(UserRole.created_at, UserRole.id)
        )
        async with self.session_factory() as session:
            with storage_errors("list user roles"):
                result = await session.execute(stmt)
                assignments = result.scalars().all()

        return [
            {
                "key": assignment.role.key,
                "name": assignment.role.name,
                "context_id": assignment.context_id,
                "context_type": assignment.context_type,
            }
            for assignment in assignments
        ]

    # ------------------------------------------------------------------
    # Role permissions
    # ------------------------------------------------------------------

    async def add_permission_to_role(
        self,
        role: str,
        permission_key: str,
        scope: Scope = GLOBAL,
        actor_id: Optional[str] = None
    ) -> RolePermission:
        """
        Grant a permission to a role. The permission row is created on first use.

        Raises:
            NotFoundError: if the role or the exact-scope context is unknown
            ValidationError: if the permission key is malformed
        """
        permission_key = validate_permission_key(permission_key)

        async with self.session_factory() as session:
            with storage_errors("grant permission to role"):
                db_role = await find_role(session, role)
                if db_role is None:
                    raise NotFoundError("Role", role)
                await ensure_context_exists(session, scope)
                permission = await ensure_permission(session, permission_key)

                result = await session.execute(
                    select(RolePermission).where(
                        RolePermission.role_id == db_role.id,
                        RolePermission.permission_id == permission.id,
                        RolePermission.scope_key == scope.key,
                    )
                )
                grant = result.scalars().first()
                if grant is None:
                    grant = RolePermission(role_id=db_role.id, permission_id=permission.id)
                    grant.apply_scope(scope)
                    session.add(grant)
                    await session.commit()
                    await session.refresh(grant)

        await self.audit.log(
            "permission.role.granted",
            actor_id=actor_id,
            context_id=scope.context_id,
            resource_type="role",
            resource_id=db_role.id,
            details={"role_key": db_role.key, "permission_key": permission_key, "context_type": scope.context_type},
        )
        return grant

    async def remove_permission_from_role(
        self,
        role: str,
        permission_key: str,
        scope: Scope = GLOBAL,
        actor_id: Optional[str] = None
    ) -> bool:
        """
        Revoke a role's permission in exactly this scope. Missing grants are a no-op.

        Returns:
            True if a grant was removed
        """
        async with self.session_factory() as session:
            with storage_errors("revoke permission from role"):
                db_role = await find_role(session, role)
                if db_role is None:
                    return False
                result = await session.execute(select(Permission.id).where(Permission.key == permission_key))
                permission_id = result.scalars().first()
                if permission_id is None:
                    return False

                deleted = await session.execute(
                    delete(RolePermission).where(
                        RolePermission.role_id == db_role.id,
                        RolePermission.permission_id == permission_id,
                        scope_equals(RolePermission, scope),
                    )
                )
                await session.commit()

        removed = deleted.rowcount > 0
        await self.audit.log(
            "permission.role.revoked",
            actor_id=actor_id,
            context_id=scope.context_id,
            resource_type="role",
            resource_id=db_role.id,
            details={"role_key": db_role.key, "permission_key": permission_key, "removed": removed},
        )
        return removed

    async def list_role_permissions(self, role: str) -> List[Dict[str, Optional[str]]]:
        """
        Every permission granted to a role, across all scopes.

        Raises:
            NotFoundError: if the role is unknown
        """
        async with self.session_factory() as session:
            with storage_errors("list role permissions"):
                db_role = await find_role(session, role)
                if db_role is None:
                    raise NotFoundError("Role", role)
                result = await session.execute(
                    select(RolePermission).where(RolePermission.role_id == db_role.id)
                )
                grants = result.scalars().all()

        return sorted(
            (
                {
                    "permission_key": grant.permission.key,
                    "context_id": grant.context_id,
                    "context_type": grant.context_type,
                }
                for grant in grants
            ),
            key=lambda item: (item["permission_key"], item["context_id"] or "", item["context_type"] or ""),
        )
