"""
Role models.

- Role: a named set of permissions defined for exactly one context type
- RolePermission: permission granted to a role (global, type-wide or exact)
- UserRole: role assigned to a user (global, type-wide or exact)
"""
from sqlalchemy import String, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lattice.core.database.base import Base, TimestampMixin, ScopedGrantMixin, generate_ulid
from lattice.features.permissions.models import Permission


class Role(Base, TimestampMixin):
    """
    Role model.

    A role can only be assigned inside contexts whose type equals context_type.
    Examples: ("Org Admin", "org_admin", "organization"), ("Team Viewer", "team_viewer", "team")
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    context_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, key={self.key!r}, context_type={self.context_type})>"


class RolePermission(Base, TimestampMixin, ScopedGrantMixin):
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "permission_id", "scope_key", name="uq_role_permission_scope"),
        CheckConstraint("context_id IS NULL OR context_type IS NULL", name="ck_role_permission_scope"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    role_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    permission_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    permission: Mapped["Permission"] = relationship("Permission", lazy="joined")

    def __repr__(self) -> str:
        return f"<RolePermission(role_id={self.role_id}, permission_id={self.permission_id}, scope={self.scope})>"


class UserRole(Base, TimestampMixin, ScopedGrantMixin):
    __tablename__ = "user_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", "scope_key", name="uq_user_role_scope"),
        CheckConstraint("context_id IS NULL OR context_type IS NULL", name="ck_user_role_scope"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    role: Mapped["Role"] = relationship("Role", lazy="joined")

    def __repr__(self) -> str:
        return f"<UserRole(user_id={self.user_id}, role_id={self.role_id}, scope={self.scope})>"
