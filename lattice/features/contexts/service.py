"""
Context management service.
"""
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lattice.core.database.engine import storage_errors
from lattice.core.errors import ConflictError, NotFoundError, ValidationError
from lattice.core.validation import validate_pagination, validate_string
from lattice.features.audit.service import AuditService
from lattice.features.contexts.models import Context, UserContext
from lattice.features.permissions.models import UserPermission
from lattice.features.roles.models import Role, RolePermission, UserRole


class ContextService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], audit: AuditService):
        self.session_factory = session_factory
        self.audit = audit

    async def create_context(
        self,
        id: str,
        type: str,
        name: Optional[str] = None,
        actor_id: Optional[str] = None
    ) -> Context:
        """
        Create a context, or return the existing one with the same id.

        Raises:
            ValidationError: if id or type is blank
        """
        context_id = validate_string(id, "context id")
        context_type = validate_string(type, "context type")

        async with self.session_factory() as session:
            with storage_errors("create context"):
                existing = await session.get(Context, context_id)
                if existing:
                    return existing

                context = Context(id=context_id, type=context_type, name=name)
                session.add(context)
                await session.commit()
                await session.refresh(context)

        await self.audit.log(
            "context.created",
            actor_id=actor_id,
            context_id=context_id,
            resource_type="context",
            resource_id=context_id,
            details={"type": context_type, "name": name},
        )
        return context

    async def get_context(self, id: str) -> Optional[Context]:
        context_id = validate_string(id, "context id")
        async with self.session_factory() as session:
            with storage_errors("get context"):
                return await session.get(Context, context_id)

    async def require_context(self, session: AsyncSession, context_id: str) -> Context:
        """Load a context inside an open session or raise NotFoundError."""
        context = await session.get(Context, context_id)
        if context is None:
            raise NotFoundError("Context", context_id)
        return context

    async def update_context(
        self,
        id: str,
        name: Optional[str] = None,
        type: Optional[str] = None,
        actor_id: Optional[str] = None
    ) -> Context:
        """
        Update a context's name and/or type.

        The type cannot change while users hold roles in the context whose
        context type differs from the new type.

        Raises:
            NotFoundError: if the context does not exist
            ValidationError: if a supplied value is blank, or the type change
                would leave mismatched role assignments
        """
        context_id = validate_string(id, "context id")
        updates: Dict[str, Any] = {}
        if name is not None:
            updates["name"] = validate_string(name, "context name")
        if type is not None:
            updates["type"] = validate_string(type, "context type")

        async with self.session_factory() as session:
            with storage_errors("update context"):
                context = await self.require_context(session, context_id)
                new_type = updates.get("type")
                if new_type and new_type != context.type:
                    await self._ensure_roles_fit_type(session, context_id, new_type)
                for key, value in updates.items():
                    setattr(context, key, value)
                await session.commit()
                await session.refresh(context)

        await self.audit.log(
            "context.updated",
            actor_id=actor_id,
            context_id=context_id,
            resource_type="context",
            resource_id=context_id,
            details=updates,
        )
        return context

    async def delete_context(self, id: str, actor_id: Optional[str] = None) -> None:
        """
        Delete a context with every grant, role assignment and membership bound to it.

        The cascade runs in one transaction.

        Raises:
            NotFoundError: if the context does not exist
        """
        context_id = validate_string(id, "context id")

        async with self.session_factory() as session:
            with storage_errors("delete context"):
                async with session.begin():
                    await self.require_context(session, context_id)
                    await session.execute(delete(UserRole).where(UserRole.context_id == context_id))
                    await session.execute(delete(RolePermission).where(RolePermission.context_id == context_id))
                    await session.execute(delete(UserPermission).where(UserPermission.context_id == context_id))
                    await session.execute(delete(UserContext).where(UserContext.context_id == context_id))
                    await session.execute(delete(Context).where(Context.id == context_id))

        await self.audit.log(
            "context.deleted",
            actor_id=actor_id,
            context_id=context_id,
            resource_type="context",
            resource_id=context_id,
        )

    async def list_contexts(
        self,
        type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[Context], int]:
        """
        List contexts ordered by id.

        Returns:
            (page of contexts, total matching contexts)
        """
        if type is not None:
            validate_string(type, "context type")
        validate_pagination(limit, offset)

        stmt = select(Context)
        if type:
            stmt = stmt.where(Context.type == type)

        async with self.session_factory() as session:
            with storage_errors("list contexts"):
                total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
                result = await session.execute(stmt.order_by(Context.id).offset(offset).limit(limit))
                contexts = list(result.scalars().all())

        return contexts, total

    async def _ensure_roles_fit_type(self, session: AsyncSession, context_id: str, context_type: str) -> None:
        result = await session.execute(
            select(Role.key)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.context_id == context_id, Role.context_type != context_type)
            .distinct()
        )
        mismatched = sorted(result.scalars().all())
        if mismatched:
            raise ValidationError(
                f"Context {context_id} has assignments of roles that cannot be held in a {context_type} context",
                {"context_type": context_type, "roles": mismatched},
            )

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def add_user_to_context(
        self,
        context_id: str,
        user_id: str,
        actor_id: Optional[str] = None
    ) -> UserContext:
        """
        Add a user to a context.

        Raises:
            NotFoundError: if the context does not exist
            ConflictError: if the user is already a member
        """
        context_id = validate_string(context_id, "context id")
        user_id = validate_string(user_id, "user id")

        async with self.session_factory() as session:
            with storage_errors("add user to context"):
                await self.require_context(session, context_id)
                result = await session.execute(
                    select(UserContext).where(UserContext.user_id == user_id, UserContext.context_id == context_id)
                )
                if result.scalars().first() is not None:
                    raise ConflictError(
                        f"User {user_id} is already a member of context {context_id}",
                        {"user_id": user_id, "context_id": context_id},
                    )

                membership = UserContext(user_id=user_id, context_id=context_id)
                session.add(membership)
                await session.commit()
                await session.refresh(membership)

        await self.audit.log(
            "context.user.added",
            actor_id=actor_id,
            target_user_id=user_id,
            context_id=context_id,
            resource_type="context",
            resource_id=context_id,
        )
        return membership

    async def remove_user_from_context(
        self,
        context_id: str,
        user_id: str,
        actor_id: Optional[str] = None
    ) -> bool:
        """
        Remove a user from a context. Removing a non-member is a no-op.

        Returns:
            True if a membership was removed

        Raises:
            NotFoundError: if the context does not exist
        """
        context_id = validate_string(context_id, "context id")
        user_id = validate_string(user_id, "user id")

        async with self.session_factory() as session:
            with storage_errors("remove user from context"):
                await self.require_context(session, context_id)
                deleted = await session.execute(
                    delete(UserContext).where(UserContext.user_id == user_id, UserContext.context_id == context_id)
                )
                await session.commit()

        removed = deleted.rowcount > 0
        await self.audit.log(
            "context.user.removed",
            actor_id=actor_id,
            target_user_id=user_id,
            context_id=context_id,
            resource_type="context",
            resource_id=context_id,
            details={"removed": removed},
        )
        return removed

    async def list_context_users(self, context_id: str) -> List[UserContext]:
        """
        Memberships of a context, ordered by user id.

        Raises:
            NotFoundError: if the context does not exist
        """
        context_id = validate_string(context_id, "context id")
        async with self.session_factory() as session:
            with storage_errors("list context users"):
                await self.require_context(session, context_id)
                result = await session.execute(
                    select(UserContext)
                    .where(UserContext.context_id == context_id)
                    .order_by(UserContext.user_id)
                )
                return list(result.scalars().all())
