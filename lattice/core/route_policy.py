"""
Route permission policy.

Maps every management route to the permission key it requires, so a
deployment can rename or split the keys without touching the routes.
Omitted sections and fields keep their defaults:

    policy = RoutePermissionPolicy.model_validate({"roles": {"create": "admin:roles:create"}})
    app = create_app(core, route_policy=policy)

The role permission templates may contain `{type}` (the role's context type)
and `{perm}` (the permission being granted or revoked).
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator

from lattice.core.errors import ValidationError
from lattice.core.validation import validate_permission_key


class PolicySection(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("*")
    @classmethod
    def valid_permission_key(cls, v: str) -> str:
        try:
            return validate_permission_key(v)
        except ValidationError as e:
            raise ValueError(e.message) from e


class RoleRoutePolicy(PolicySection):
    create: str = "roles:create"
    list: str = "roles:read"
    get: str = "roles:read"
    delete: str = "roles:delete"
    assign: str = "roles:assign"
    remove: str = "roles:assign"
    add_perm: str = "roles:permissions:grant"
    remove_perm: str = "roles:permissions:revoke"
    # Checked type-wide for the role's context type when its permissions change
    role_manage: str = "roles:manage"
    permission_grant: str = "permissions:grant"
    permission_revoke: str = "permissions:revoke"


class PermissionRoutePolicy(PolicySection):
    read: str = "permissions:read"
    grant_user: str = "permissions:grant"
    revoke_user: str = "permissions:revoke"
    check: str = "permissions:check"


class ContextRoutePolicy(PolicySection):
    create: str = "contexts:create"
    list: str = "contexts:read"
    get: str = "contexts:read"
    update: str = "contexts:update"
    delete: str = "contexts:delete"
    add_user: str = "contexts:assign"
    remove_user: str = "contexts:assign"
    list_users: str = "contexts:assign"


class PolicyRoutePolicy(PolicySection):
    manage: str = "policies:manage"


class AuditRoutePolicy(PolicySection):
    read: str = "audit:read"


class RoutePermissionPolicy(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    roles: RoleRoutePolicy = Field(default_factory=RoleRoutePolicy)
    permissions: PermissionRoutePolicy = Field(default_factory=PermissionRoutePolicy)
    contexts: ContextRoutePolicy = Field(default_factory=ContextRoutePolicy)
    policies: PolicyRoutePolicy = Field(default_factory=PolicyRoutePolicy)
    audit: AuditRoutePolicy = Field(default_factory=AuditRoutePolicy)

    def permission_for(self, section: str, action: str) -> str:
        """Look up the key a route requires, e.g. permission_for("roles", "create")."""
        return getattr(getattr(self, section), action)


def expand_template(template: str, context_type: str, permission_key: str) -> str:
    return template.replace("{type}", context_type).replace("{perm}", permission_key)


DEFAULT_ROUTE_POLICY = RoutePermissionPolicy()
