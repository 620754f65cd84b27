"""
Tests for the permission catalog and direct user grants.
"""
import pytest

from lattice.core.errors import NotFoundError, ValidationError
from lattice.core.scope import GLOBAL, ExactScope, TypeWideScope


class TestCatalog:

    @pytest.mark.asyncio
    async def test_create_permission(self, core):
        permission = await core.permissions.create_permission("orders:read", "Read orders")

        assert permission.key == "orders:read"
        assert permission.label == "Read orders"

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, core):
        first = await core.permissions.create_permission("orders:read", "Read orders")
        second = await core.permissions.create_permission("orders:read", "Another label")

        assert second.id == first.id
        assert second.label == "Read orders"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["", "orders read", "orders::read", ":read", "orders:"])
    async def test_malformed_keys_rejected(self, core, key):
        with pytest.raises(ValidationError):
            await core.permissions.create_permission(key)

    @pytest.mark.asyncio
    async def test_update_label(self, core):
        await core.permissions.create_permission("orders:read")
        updated = await core.permissions.update_label("orders:read", "Read orders")
        assert updated.label == "Read orders"

    @pytest.mark.asyncio
    async def test_update_label_of_missing_permission(self, core):
        with pytest.raises(NotFoundError):
            await core.permissions.update_label("orders:read", "Read orders")

    @pytest.mark.asyncio
    async def test_list_by_plugin(self, core):
        core.registry.register("shop:orders:read", plugin="shop")
        await core.registry.sync_to_database()
        await core.permissions.create_permission("users:read")

        assert [p.key for p in await core.permissions.list_permissions(plugin="shop")] == ["shop:orders:read"]
        assert len(await core.permissions.list_permissions()) == 2


class TestDirectGrants:

    @pytest.mark.asyncio
    async def test_grant_creates_permission_on_first_use(self, core):
        grant = await core.permissions.grant_to_user("u1", "orders:read")

        assert grant.user_id == "u1"
        assert grant.context_id is None and grant.context_type is None
        assert await core.permissions.get_permission("orders:read") is not None

    @pytest.mark.asyncio
    async def test_grant_is_idempotent_per_scope(self, core):
        first = await core.permissions.grant_to_user("u1", "orders:read")
        second = await core.permissions.grant_to_user("u1", "orders:read")
        type_wide = await core.permissions.grant_to_user("u1", "orders:read", TypeWideScope("team"))

        assert second.id == first.id
        assert type_wide.id != first.id
        assert type_wide.context_type == "team"

    @pytest.mark.asyncio
    async def test_exact_grant_requires_existing_context(self, core):
        with pytest.raises(NotFoundError):
            await core.permissions.grant_to_user("u1", "orders:read", ExactScope("nowhere"))

    @pytest.mark.asyncio
    async def test_blank_user_rejected(self, core):
        with pytest.raises(ValidationError):
            await core.permissions.grant_to_user(" ", "orders:read")

    @pytest.mark.asyncio
    async def test_list_user_permissions_is_scope_exact(self, core):
        await core.contexts.create_context("t1", "team")
        await core.permissions.grant_to_user("u1", "orders:read")
        await core.permissions.grant_to_user("u1", "members:invite", TypeWideScope("team"))
        await core.permissions.grant_to_user("u1", "budget:approve", ExactScope("t1"))

        assert [p.key for p in await core.permissions.list_user_permissions("u1")] == ["orders:read"]
        assert [p.key for p in await core.permissions.list_user_permissions("u1", TypeWideScope("team"))] == [
            "members:invite"
        ]
        assert [p.key for p in await core.permissions.list_user_permissions("u1", ExactScope("t1"))] == [
            "budget:approve"
        ]

    @pytest.mark.asyncio
    async def test_revoke(self, core):
        await core.permissions.grant_to_user("u1", "orders:read")

        assert await core.permissions.revoke_from_user("u1", "orders:read") is True
        assert await core.permissions.list_user_permissions("u1") == []

    @pytest.mark.asyncio
    async def test_revoke_only_touches_the_given_scope(self, core):
        await core.permissions.grant_to_user("u1", "orders:read")
        await core.permissions.grant_to_user("u1", "orders:read", TypeWideScope("team"))

        await core.permissions.revoke_from_user("u1", "orders:read", TypeWideScope("team"))

        assert [p.key for p in await core.permissions.list_user_permissions("u1")] == ["orders:read"]

    @pytest.mark.asyncio
    async def test_revoke_missing_grant_is_noop(self, core):
        assert await core.permissions.revoke_from_user("u1", "orders:read") is False
        await core.permissions.create_permission("orders:read")
        assert await core.permissions.revoke_from_user("u1", "orders:read") is False


class TestBulkGrant:

    @pytest.mark.asyncio
    async def test_grants_every_entry(self, core):
        await core.contexts.create_context("t1", "team")

        grants = await core.permissions.bulk_grant_to_user(
            "u1",
            [("orders:read", GLOBAL), ("members:invite", ExactScope("t1")), ("projects:create", TypeWideScope("team"))],
            actor_id="admin",
        )

        assert [(g.context_id, g.context_type) for g in grants] == [(None, None), ("t1", None), (None, "team")]
        assert [p.key for p in await core.permissions.list_user_permissions("u1")] == ["orders:read"]
        assert [p.key for p in await core.permissions.list_user_permissions("u1", ExactScope("t1"))] == ["members:invite"]

        _, total = await core.audit.list_logs(action="permission.user.bulk_granted", actor_id="admin")
        assert total == 1

    @pytest.mark.asyncio
    async def test_repeated_and_existing_grants_are_reused(self, core):
        existing = await core.permissions.grant_to_user("u1", "orders:read")

        grants = await core.permissions.bulk_grant_to_user("u1", [("orders:read", GLOBAL), ("orders:read", GLOBAL)])

        assert [g.id for g in grants] == [existing.id, existing.id]

    @pytest.mark.asyncio
    async def test_empty_batch_rejected(self, core):
        with pytest.raises(ValidationError):
            await core.permissions.bulk_grant_to_user("u1", [])

    @pytest.mark.asyncio
    async def test_malformed_key_rejects_whole_batch(self, core):
        with pytest.raises(ValidationError):
            await core.permissions.bulk_grant_to_user("u1", [("orders:read", GLOBAL), ("orders read", GLOBAL)])

        assert await core.permissions.get_permission("orders:read") is None

    @pytest.mark.asyncio
    async def test_failing_entry_rolls_back_batch(self, core):
        with pytest.raises(NotFoundError):
            await core.permissions.bulk_grant_to_user(
                "u1",
                [("orders:read", GLOBAL), ("members:invite", ExactScope("nowhere"))],
            )

        assert await core.permissions.list_user_permissions("u1") == []
        assert await core.permissions.get_permission("orders:read") is None
