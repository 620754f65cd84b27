"""
Tests for role management: creation, assignment rules, permissions and deletion.
"""
import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from lattice.core.errors import NotFoundError, StorageError, ValidationError
from lattice.core.scope import ExactScope, TypeWideScope
from lattice.features.roles.models import RolePermission, UserRole


async def count_rows(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar()


@pytest_asyncio.fixture
async def team_role(core):
    await core.contexts.create_context("t1", "team", name="Platform")
    await core.contexts.create_context("o1", "organization", name="Acme")
    return await core.roles.create_role("Team Lead", "team", key="team_lead")


class TestCreateRole:

    @pytest.mark.asyncio
    async def test_create_role(self, core):
        role = await core.roles.create_role("Org Admin", "organization", key="org_admin")

        assert role.id
        assert role.key == "org_admin"
        assert role.context_type == "organization"
        assert (await core.roles.get_role("org_admin")).id == role.id

    @pytest.mark.asyncio
    async def test_key_is_generated(self, core):
        role = await core.roles.create_role("Viewer", "team")
        assert len(role.key) == 26

    @pytest.mark.asyncio
    async def test_create_is_idempotent_by_key(self, core):
        first = await core.roles.create_role("Org Admin", "organization", key="org_admin")
        second = await core.roles.create_role("Renamed", "organization", key="org_admin")

        assert second.id == first.id
        assert len(await core.roles.list_roles()) == 1

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, core):
        with pytest.raises(ValidationError):
            await core.roles.create_role("  ", "team")

    @pytest.mark.asyncio
    async def test_get_role_by_name(self, core):
        await core.roles.create_role("Org Admin", "organization", key="org_admin")
        assert (await core.roles.get_role("Org Admin")).key == "org_admin"

    @pytest.mark.asyncio
    async def test_list_roles_by_context_type(self, core):
        await core.roles.create_role("Org Admin", "organization", key="org_admin")
        await core.roles.create_role("Team Lead", "team", key="team_lead")

        roles = await core.roles.list_roles(context_type="team")
        assert [r.key for r in roles] == ["team_lead"]


class TestAssignRole:

    @pytest.mark.asyncio
    async def test_assign_in_matching_context(self, core, team_role):
        assignment = await core.roles.assign_role_to_user("team_lead", "u1", ExactScope("t1"))
        assert assignment.context_id == "t1"

        roles = await core.roles.list_user_roles("u1", context_id="t1")
        assert roles == [{"key": "team_lead", "name": "Team Lead", "context_id": "t1", "context_type": None}]

    @pytest.mark.asyncio
    async def test_assign_in_context_of_other_type_rejected(self, core, team_role):
        with pytest.raises(ValidationError):
            await core.roles.assign_role_to_user("team_lead", "u1", ExactScope("o1"))

    @pytest.mark.asyncio
    async def test_type_wide_assignment_must_match_role_type(self, core, team_role):
        await core.roles.assign_role_to_user("team_lead", "u1", TypeWideScope("team"))
        with pytest.raises(ValidationError):
            await core.roles.assign_role_to_user("team_lead", "u2", TypeWideScope("organization"))

    @pytest.mark.asyncio
    async def test_unknown_role(self, core, team_role):
        with pytest.raises(NotFoundError):
            await core.roles.assign_role_to_user("ghost", "u1")

    @pytest.mark.asyncio
    async def test_unknown_context(self, core, team_role):
        with pytest.raises(NotFoundError):
            await core.roles.assign_role_to_user("team_lead", "u1", ExactScope("nowhere"))

    @pytest.mark.asyncio
    async def test_assignment_is_idempotent(self, core, team_role, session_factory):
        first = await core.roles.assign_role_to_user("team_lead", "u1", ExactScope("t1"))
        second = await core.roles.assign_role_to_user("team_lead", "u1", ExactScope("t1"))

        assert second.id == first.id
        assert await count_rows(session_factory, UserRole) == 1

    @pytest.mark.asyncio
    async def test_remove_assignment(self, core, team_role):
        await core.roles.assign_role_to_user("team_lead", "u1", ExactScope("t1"))

        assert await core.roles.remove_role_from_user("team_lead", "u1", ExactScope("t1")) is True
        assert await core.roles.list_user_roles("u1", context_id="t1") == []

    @pytest.mark.asyncio
    async def test_remove_missing_assignment_is_noop(self, core, team_role):
        assert await core.roles.remove_role_from_user("team_lead", "u1", ExactScope("t1")) is False
        assert await core.roles.remove_role_from_user("ghost", "u1") is False


class TestRolePermissions:

    @pytest.mark.asyncio
    async def test_add_and_list(self, core, team_role):
        await core.roles.add_permission_to_role("team_lead", "members:invite")
        await core.roles.add_permission_to_role("team_lead", "budget:approve", ExactScope("t1"))

        assert await core.roles.list_role_permissions("team_lead") == [
            {"permission_key": "budget:approve", "context_id": "t1", "context_type": None},
            {"permission_key": "members:invite", "context_id": None, "context_type": None},
        ]

    @pytest.mark.asyncio
    async def test_add_creates_permission_row(self, core, team_role):
        await core.roles.add_permission_to_role("team_lead", "members:invite")
        permission = await core.permissions.get_permission("members:invite")
        assert permission.label == "members:invite"

    @pytest.mark.asyncio
    async def test_malformed_key_rejected(self, core, team_role):
        with pytest.raises(ValidationError):
            await core.roles.add_permission_to_role("team_lead", "members::invite")

    @pytest.mark.asyncio
    async def test_unknown_role(self, core):
        with pytest.raises(NotFoundError):
            await core.roles.add_permission_to_role("ghost", "members:invite")

    @pytest.mark.asyncio
    async def test_remove_permission(self, core, team_role):
        await core.roles.add_permission_to_role("team_lead", "members:invite")

        assert await core.roles.remove_permission_from_role("team_lead", "members:invite") is True
        assert await core.roles.remove_permission_from_role("team_lead", "members:invite") is False
        assert await core.roles.list_role_permissions("team_lead") == []


class TestDeleteRole:

    @pytest.mark.asyncio
    async def test_delete_cascades(self, core, team_role, session_factory):
        await core.roles.add_permission_to_role("team_lead", "members:invite")
        await core.roles.assign_role_to_user("team_lead", "u1", ExactScope("t1"))

        assert await core.roles.delete_role("team_lead") is True

        assert await core.roles.get_role("team_lead") is None
        assert await count_rows(session_factory, RolePermission) == 0
        assert await count_rows(session_factory, UserRole) == 0

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_role_and_grants(self, core, team_role, session_factory, monkeypatch):
        await core.roles.add_permission_to_role("team_lead", "members:invite")
        await core.roles.assign_role_to_user("team_lead", "u1", ExactScope("t1"))

        execute = AsyncSession.execute

        async def failing_execute(self, statement, *args, **kwargs):
            if getattr(statement, "is_delete", False) and statement.table.name == "roles":
                raise OperationalError("DELETE FROM roles", {}, Exception("database is locked"))
            return await execute(self, statement, *args, **kwargs)

        monkeypatch.setattr(AsyncSession, "execute", failing_execute)

        with pytest.raises(StorageError):
            await core.roles.delete_role("team_lead")

        assert await core.roles.get_role("team_lead") is not None
        assert await count_rows(session_factory, RolePermission) == 1
        assert await count_rows(session_factory, UserRole) == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_role(self, core):
        assert await core.roles.delete_role("ghost") is False
