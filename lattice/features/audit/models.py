"""
Audit log model.
"""
from typing import Any, Dict
from sqlalchemy import String, JSON, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from lattice.core.database.base import Base, TimestampMixin, generate_ulid


class AuditLog(Base, TimestampMixin):
    """
    Audit log for permission checks and management operations.

    Tracks who did what, to whom, in which context, and whether it succeeded.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Actor and subject
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    target_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    # Action details
    action: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Context (no foreign key: audit rows outlive deleted contexts)
    context_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, actor_id={self.actor_id}, action={self.action}, success={self.success})>"
