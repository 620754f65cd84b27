"""
Attribute-based access control policy model.
"""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lattice.core.database.base import Base, TimestampMixin, generate_ulid


PERMIT = "permit"
DENY = "deny"
EFFECTS = (PERMIT, DENY)


class AbacPolicy(Base, TimestampMixin):
    """
    ABAC policy targeting one (action, resource) pair.

    condition is a CEL expression over the attribute document
    {user, resource, environment}, e.g.:
    - 'user.id == "u_1"'
    - 'resource.id == "org_1" && environment.time < "2030-01-01"'
    """
    __tablename__ = "abac_policies"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    action: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    condition: Mapped[str] = mapped_column(Text, nullable=False)
    effect: Mapped[str] = mapped_column(String(10), nullable=False)

    def __repr__(self) -> str:
        return f"<AbacPolicy(id={self.id}, action={self.action}, resource={self.resource}, effect={self.effect})>"
