"""
Audit sink.

Records permission checks and management operations in the audit_logs table.
Recording is fire-and-forget: a storage failure is logged and never raised to
the operation being audited.
"""
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lattice.core.database.engine import storage_errors
from lattice.core.validation import validate_pagination
from lattice.features.audit.models import AuditLog
from lattice.utils import get_logger


log = get_logger(__name__)


PERMISSION_CHECK = "permission.check"


class AuditService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], enabled: bool = True):
        self.session_factory = session_factory
        self.enabled = enabled

    async def log(
        self,
        action: str,
        success: bool = True,
        actor_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        context_id: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[AuditLog]:
        """
        Create an audit log entry.

        Args:
            action: Action performed (e.g. "role.created", "permission.check")
            success: Whether the action succeeded / access was granted
            actor_id: User performing the action
            target_user_id: User the action applies to
            context_id: Context the action happened in
            resource_type: Type of resource (e.g. "role", "permission")
            resource_id: Identifier of the resource
            details: Additional JSON details

        Returns:
            The created AuditLog, or None when auditing is disabled or failed
        """
        if not self.enabled:
            return None

        entry = AuditLog(
            actor_id=actor_id,
            target_user_id=target_user_id,
            context_id=context_id,
            action=action,
            success=success,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
        )
        try:
            async with self.session_factory() as session:
                session.add(entry)
                await session.commit()
                await session.refresh(entry)
        except SQLAlchemyError as e:
            log.warning(f"Failed to record audit event {action}: {e}")
            return None

        log.debug(f"Audit: actor={actor_id} action={action} success={success} context={context_id}")
        return entry

    async def log_permission_check(
        self,
        actor_id: Optional[str],
        context_id: Optional[str],
        permission: str,
        success: bool
    ) -> Optional[AuditLog]:
        return await self.log(
            PERMISSION_CHECK,
            success=success,
            actor_id=actor_id,
            context_id=context_id,
            resource_type="permission",
            resource_id=permission,
            details={"permission": permission},
        )

    async def list_logs(
        self,
        actor_id: Optional[str] = None,
        context_id: Optional[str] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Tuple[List[AuditLog], int]:
        """
        List audit logs, newest first, with optional filtering.

        Returns:
            (page of entries, total matching entries)
        """
        validate_pagination(limit, offset)

        stmt = select(AuditLog)
        if actor_id:
            stmt = stmt.where(AuditLog.actor_id == actor_id)
        if context_id:
            stmt = stmt.where(AuditLog.context_id == context_id)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        if resource_type:
            stmt = stmt.where(AuditLog.resource_type == resource_type)

        async with self.session_factory() as session:
            with storage_errors("list audit logs"):
                count_stmt = select(func.count()).select_from(stmt.subquery())
                total = (await session.execute(count_stmt)).scalar() or 0

                page_stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit)
                result = await session.execute(page_stmt)
                entries = list(result.scalars().all())

        return entries, total
