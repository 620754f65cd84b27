"""
Seed script to populate default permissions and roles.

Run this script after configuring DATABASE_URL to create:
- The permission catalog used by the management API
- Default roles with their permission grants
- Optionally, a global administrator (SEED_ADMIN_USER_ID)

Usage:
    uv run python -m scripts.seed_permissions
"""
import asyncio
import os

from lattice.core.database.engine import init_db
from lattice.core.lattice import LatticeCore
from lattice.utils import get_logger


log = get_logger(__name__)


DEFAULT_PERMISSIONS = [
    # Permission management
    ("permissions:read", "View permissions"),
    ("permissions:grant", "Grant permissions to users"),
    ("permissions:revoke", "Revoke permissions from users"),
    ("permissions:check", "Check another user's access"),

    # Role management
    ("roles:read", "View roles"),
    ("roles:create", "Create roles"),
    ("roles:delete", "Delete roles"),
    ("roles:assign", "Assign and remove user roles"),
    ("roles:permissions:grant", "Grant permissions to roles"),
    ("roles:permissions:revoke", "Revoke permissions from roles"),
    ("roles:manage", "Manage roles of a context type"),

    # Context management
    ("contexts:read", "View contexts"),
    ("contexts:create", "Create contexts"),
    ("contexts:update", "Update contexts"),
    ("contexts:delete", "Delete contexts"),
    ("contexts:assign", "Add and remove context members"),

    # Policies and audit
    ("policies:manage", "Manage ABAC policies"),
    ("audit:read", "View audit logs"),
]


DEFAULT_ROLES = {
    "system_admin": {
        "name": "System Admin",
        "context_type": "organization",
        "permissions": ["*"],
    },
    "org_admin": {
        "name": "Organization Admin",
        "context_type": "organization",
        "permissions": [
            "roles:*",
            "contexts:read", "contexts:update", "contexts:assign",
            "permissions:read", "permissions:grant", "permissions:revoke",
        ],
    },
    "auditor": {
        "name": "Auditor",
        "context_type": "organization",
        "permissions": [
            "audit:read",
            "permissions:read",
            "roles:read",
            "contexts:read",
        ],
    },
    "team_viewer": {
        "name": "Team Viewer",
        "context_type": "team",
        "permissions": ["contexts:read", "roles:read"],
    },
}


async def seed_permissions(core: LatticeCore) -> int:
    """
    Register the default permissions and persist the missing ones.

    Returns:
        Number of permissions created
    """
    log.info("Creating default permissions...")
    for key, label in DEFAULT_PERMISSIONS:
        core.registry.register(key, label)

    created = await core.registry.sync_to_database()
    log.info(f"Created {created} permissions")
    return created


async def seed_roles(core: LatticeCore):
    """Create default roles and grant their permissions globally."""
    log.info("Creating default roles...")

    for role_key, role_config in DEFAULT_ROLES.items():
        role = await core.roles.create_role(role_config["name"], role_config["context_type"], key=role_key)
        for permission_key in role_config["permissions"]:
            await core.roles.add_permission_to_role(role.key, permission_key)
        log.info(f"Role '{role_key}' has {len(role_config['permissions'])} permissions")

    log.info("Default roles created successfully")


async def main():
    """Main function to seed permissions and roles."""
    log.info("Starting permission seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    core = LatticeCore()
    await core.startup()

    try:
        await seed_permissions(core)
        await seed_roles(core)

        admin_user_id = os.environ.get("SEED_ADMIN_USER_ID")
        if admin_user_id:
            await core.roles.assign_role_to_user("system_admin", admin_user_id)
            log.info(f"Assigned system_admin globally to {admin_user_id}")

        log.info("Permission seeding completed successfully!")
        log.info("")
        log.info("Default roles created:")
        for role_key, role_config in DEFAULT_ROLES.items():
            log.info(f"  - {role_key}: {role_config['name']} ({role_config['context_type']})")
    except Exception as e:
        log.error(f"Error seeding permissions: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    asyncio.run(main())
