"""
Tests for the access decision orchestrator.

The resolver, evaluator and audit sink are mocked so the RBAC gate, scope
resolution and fail-closed behavior can be asserted call by call.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from lattice.core.errors import StorageError
from lattice.core.scope import ContextRef, ScopeHint
from lattice.features.access.service import AccessService, resolve_lookup_context


@pytest.fixture
def resolver():
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value={"orders:read"})
    return resolver


@pytest.fixture
def evaluator():
    evaluator = MagicMock()
    evaluator.evaluate = AsyncMock(return_value=True)
    return evaluator


@pytest.fixture
def audit():
    audit = MagicMock()
    audit.log_permission_check = AsyncMock()
    return audit


@pytest.fixture
def access(resolver, evaluator, audit):
    return AccessService(resolver, evaluator, audit)


# ── Scope resolution ────────────────────────────────────────────


class TestResolveLookupContext:

    def test_no_hint_uses_context(self):
        context = ContextRef("team", "t1")
        assert resolve_lookup_context(context) is context

    def test_global_drops_context(self):
        assert resolve_lookup_context(ContextRef("team", "t1"), ScopeHint.GLOBAL) is None

    def test_type_wide_with_type_drops_id(self):
        lookup = resolve_lookup_context(ContextRef("team", "t1"), "type-wide", context_type="team")
        assert lookup == ContextRef("team", None)

    def test_type_wide_without_type_keeps_context(self):
        context = ContextRef("team", "t1")
        assert resolve_lookup_context(context, ScopeHint.TYPE_WIDE) is context

    def test_exact_uses_context(self):
        context = ContextRef("team", "t1")
        assert resolve_lookup_context(context, "exact") is context

    def test_unknown_hint_uses_context(self):
        context = ContextRef("team", "t1")
        assert resolve_lookup_context(context, "everywhere") is context


# ── Decisions ───────────────────────────────────────────────────


class TestCheckAccess:

    @pytest.mark.asyncio
    async def test_rbac_denial_skips_abac(self, access, resolver, evaluator):
        resolver.resolve.return_value = {"orders:read"}

        assert await access.check_access("u1", "orders:write") is False
        assert evaluator.evaluate.await_count == 0

    @pytest.mark.asyncio
    async def test_rbac_allow_consults_abac(self, access, evaluator):
        assert await access.check_access("u1", "orders:read", ContextRef("team", "t1")) is True
        evaluator.evaluate.assert_awaited_once_with(
            action="orders:read",
            resource="team",
            resource_id="t1",
            user_id="u1",
        )

    @pytest.mark.asyncio
    async def test_abac_denial_wins(self, access, evaluator):
        evaluator.evaluate.return_value = False
        assert await access.check_access("u1", "orders:read") is False

    @pytest.mark.asyncio
    async def test_wildcard_grant_passes_rbac(self, access, resolver):
        resolver.resolve.return_value = {"orders:*"}
        assert await access.check_access("u1", "orders:refunds:issue") is True

    @pytest.mark.asyncio
    async def test_resource_falls_back_to_unknown(self, access, evaluator):
        await access.check_access("u1", "orders:read")
        assert evaluator.evaluate.await_args.kwargs["resource"] == "unknown"
        assert evaluator.evaluate.await_args.kwargs["resource_id"] is None

    @pytest.mark.asyncio
    async def test_global_scope_resolves_without_context(self, access, resolver, evaluator):
        await access.check_access("u1", "orders:read", ContextRef("team", "t1"), scope="global", context_type="team")

        resolver.resolve.assert_awaited_once_with("u1", None)
        assert evaluator.evaluate.await_args.kwargs["resource"] == "team"

    @pytest.mark.asyncio
    async def test_type_wide_scope_resolves_type_only(self, access, resolver):
        await access.check_access("u1", "orders:read", ContextRef("team", "t1"), scope="type-wide", context_type="team")
        resolver.resolve.assert_awaited_once_with("u1", ContextRef("team", None))

    @pytest.mark.asyncio
    async def test_resolver_failure_denies(self, access, resolver, evaluator):
        resolver.resolve.side_effect = StorageError("Failed to resolve effective permissions")

        assert await access.check_access("u1", "orders:read") is False
        assert evaluator.evaluate.await_count == 0

    @pytest.mark.asyncio
    async def test_evaluator_failure_denies(self, access, evaluator):
        evaluator.evaluate.side_effect = RuntimeError("policy store down")
        assert await access.check_access("u1", "orders:read") is False

    @pytest.mark.asyncio
    async def test_unknown_scope_hint_checks_supplied_context(self, access, resolver):
        context = ContextRef("team", "t1")

        assert await access.check_access("u1", "orders:read", context, scope="everywhere") is True
        resolver.resolve.assert_awaited_once_with("u1", context)


# ── Audit ───────────────────────────────────────────────────────


class TestDecisionAudit:

    @pytest.mark.asyncio
    async def test_every_decision_is_audited(self, access, audit):
        await access.check_access("u1", "orders:read", ContextRef("team", "t1"))
        await access.check_access("u1", "orders:write", ContextRef("team", "t1"))

        calls = audit.log_permission_check.await_args_list
        assert [c.kwargs["success"] for c in calls] == [True, False]
        assert calls[0].kwargs == {
            "actor_id": "u1",
            "context_id": "t1",
            "permission": "orders:read",
            "success": True,
        }

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_change_decision(self, access, audit):
        audit.log_permission_check.side_effect = RuntimeError("audit sink down")
        assert await access.check_access("u1", "orders:read") is True

    @pytest.mark.asyncio
    async def test_works_without_audit_sink(self, resolver, evaluator):
        access = AccessService(resolver, evaluator)
        assert await access.check_access("u1", "orders:read") is True
