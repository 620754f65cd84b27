"""
SQLAlchemy declarative base and common model utilities.

All SQLAlchemy models should inherit from Base.
"""
from datetime import datetime
from typing import Optional
from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from ulid import ULID

from lattice.core.scope import Scope, scope_from_columns


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        from lattice.core.database.base import Base

        class Context(Base):
            __tablename__ = "contexts"

            id: Mapped[str] = mapped_column(String(64), primary_key=True)
    """
    pass


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ScopedGrantMixin:
    """
    Scope columns shared by user permissions, role permissions and user roles.

    At most one of context_id / context_type is set; both null means global.
    scope_key is the uniqueness component: the context id, "type:<type>" or "global".
    """
    context_type: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    scope_key: Mapped[str] = mapped_column(String(64), nullable=False)

    @declared_attr
    def context_id(cls) -> Mapped[Optional[str]]:
        return mapped_column(
            String(64),
            ForeignKey("contexts.id", ondelete="CASCADE"),
            nullable=True,
            index=True,
        )

    @property
    def scope(self) -> Scope:
        return scope_from_columns(self.context_id, self.context_type)

    def apply_scope(self, scope: Scope) -> None:
        self.context_id = scope.context_id
        self.context_type = scope.context_type
        self.scope_key = scope.key
