"""
Permission catalog and direct user grants.

- Permission: a colon-segmented key ("orders:read", "org:123:*") with a label
  and the plugin that registered it
- UserPermission: a permission granted directly to a user, scoped globally,
  to a context type, or to one context
"""
from sqlalchemy import String, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lattice.core.database.base import Base, TimestampMixin, ScopedGrantMixin, generate_ulid


class Permission(Base, TimestampMixin):
    """
    Permission model.

    Keys are unique and immutable once created; only the label may change.
    """
    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    plugin: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, key={self.key!r}, plugin={self.plugin})>"


class UserPermission(Base, TimestampMixin, ScopedGrantMixin):
    """
    Direct permission grant to a user.
    """
    __tablename__ = "user_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "permission_id", "scope_key", name="uq_user_permission_scope"),
        CheckConstraint("context_id IS NULL OR context_type IS NULL", name="ck_user_permission_scope"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    # Users are external identities
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    permission_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    permission: Mapped["Permission"] = relationship("Permission", lazy="joined")

    def __repr__(self) -> str:
        return f"<UserPermission(user_id={self.user_id}, permission_id={self.permission_id}, scope={self.scope})>"
