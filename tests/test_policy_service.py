"""
Tests for ABAC policy persistence and cache invalidation.
"""
import pytest

from lattice.core.errors import NotFoundError, ValidationError
from lattice.core.scope import ContextRef


class TestPolicyService:

    @pytest.mark.asyncio
    async def test_create_and_list(self, core):
        policy = await core.policies.create_policy("orders:read", "team", 'user.id == "u1"', "permit")

        assert policy.id
        assert [p.id for p in await core.policies.list_policies()] == [policy.id]
        assert (await core.policies.get_policy(policy.id)).effect == "permit"

    @pytest.mark.asyncio
    async def test_invalid_effect_rejected(self, core):
        with pytest.raises(ValidationError):
            await core.policies.create_policy("orders:read", "team", "true", "allow")

    @pytest.mark.asyncio
    async def test_blank_condition_rejected(self, core):
        with pytest.raises(ValidationError):
            await core.policies.create_policy("orders:read", "team", "", "permit")

    @pytest.mark.asyncio
    async def test_update(self, core):
        policy = await core.policies.create_policy("orders:read", "team", "true", "permit")
        updated = await core.policies.update_policy(policy.id, effect="deny")

        assert updated.effect == "deny"
        assert updated.condition == "true"

    @pytest.mark.asyncio
    async def test_update_missing_policy(self, core):
        with pytest.raises(NotFoundError):
            await core.policies.update_policy("missing", effect="deny")

    @pytest.mark.asyncio
    async def test_delete(self, core):
        policy = await core.policies.create_policy("orders:read", "team", "true", "permit")
        await core.policies.delete_policy(policy.id)

        assert await core.policies.get_policy(policy.id) is None
        with pytest.raises(NotFoundError):
            await core.policies.delete_policy(policy.id)


class TestCacheInvalidation:

    @pytest.mark.asyncio
    async def test_mutations_invalidate_cache(self, core):
        cache = core.policies.cache
        assert await cache.load() == []
        assert cache.is_populated

        policy = await core.policies.create_policy("orders:read", "team", "true", "deny")
        assert not cache.is_populated
        assert [p.id for p in await cache.load()] == [policy.id]

        await core.policies.update_policy(policy.id, effect="permit")
        assert not cache.is_populated
        assert (await cache.load())[0].effect == "permit"

        await core.policies.delete_policy(policy.id)
        assert not cache.is_populated
        assert await cache.load() == []

    @pytest.mark.asyncio
    async def test_new_deny_policy_applies_immediately(self, core):
        await core.permissions.grant_to_user("u1", "orders:read")
        await core.contexts.create_context("t1", "team")
        assert await core.check_access("u1", "orders:read", ContextRef("team", "t1")) is True

        await core.policies.create_policy("orders:read", "team", 'resource.id == "t1"', "deny")

        assert await core.check_access("u1", "orders:read", ContextRef("team", "t1")) is False