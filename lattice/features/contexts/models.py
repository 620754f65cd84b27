"""
Context models.

- Context: a scoping boundary grants and role assignments are bound to
- UserContext: membership of an application user in a context
"""
from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lattice.core.database.base import Base, TimestampMixin, generate_ulid


class Context(Base, TimestampMixin):
    """
    A scoping boundary grants and role assignments can be bound to.

    Examples: ("org_1", "organization", "Acme"), ("t1", "team", "Platform")
    """
    __tablename__ = "contexts"

    # Supplied by the embedding application
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Context(id={self.id}, type={self.type}, name={self.name!r})>"


class UserContext(Base, TimestampMixin):
    """
    A user's membership in a context.

    User ids are owned by the embedding application and are not validated.
    """
    __tablename__ = "user_contexts"
    __table_args__ = (
        UniqueConstraint("user_id", "context_id", name="uq_user_context"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    context_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("contexts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<UserContext(user_id={self.user_id}, context_id={self.context_id})>"
