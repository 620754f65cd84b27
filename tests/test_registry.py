"""
Tests for the in-memory permission registry and its database sync.
"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from lattice.core.errors import ValidationError
from lattice.features.permissions.models import Permission
from lattice.features.permissions.registry import PermissionRegistry


@pytest.fixture
def registry(session_factory):
    return PermissionRegistry(session_factory)


@pytest.fixture
def memory_registry():
    """Registry whose storage is never touched."""
    return PermissionRegistry(MagicMock())


async def stored_permissions(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(Permission).order_by(Permission.key))
        return list(result.scalars().all())


# ── Registration ────────────────────────────────────────────────


class TestRegister:

    def test_register_and_get(self, memory_registry):
        memory_registry.register("orders:read", "Read orders", plugin="shop")

        entry = memory_registry.get("orders:read")
        assert entry.label == "Read orders"
        assert entry.plugin == "shop"
        assert memory_registry.has("orders:read")
        assert len(memory_registry) == 1

    def test_label_defaults_to_key(self, memory_registry):
        memory_registry.register("orders:read")
        assert memory_registry.get("orders:read").label == "orders:read"

    def test_first_writer_wins(self, memory_registry):
        memory_registry.register("orders:read", "First")
        memory_registry.register("orders:read", "Second", plugin="other")

        entry = memory_registry.get("orders:read")
        assert entry.label == "First"
        assert entry.plugin is None
        assert len(memory_registry) == 1

    def test_empty_key_rejected(self, memory_registry):
        with pytest.raises(ValidationError):
            memory_registry.register("")

    def test_list_is_sorted_by_key(self, memory_registry):
        for key in ["users:read", "orders:write", "audit:read"]:
            memory_registry.register(key)

        assert [entry.key for entry in memory_registry.list()] == ["audit:read", "orders:write", "users:read"]

    def test_clear(self, memory_registry):
        memory_registry.register("orders:read")
        memory_registry.clear()
        assert len(memory_registry) == 0
        assert memory_registry.get("orders:read") is None


# ── Database ────────────────────────────────────────────────────


class TestDatabaseSync:

    @pytest.mark.asyncio
    async def test_sync_creates_missing_rows(self, registry, session_factory):
        registry.register("orders:read", "Read orders", plugin="shop")
        registry.register("orders:write")

        created = await registry.sync_to_database()

        assert created == 2
        rows = await stored_permissions(session_factory)
        assert [(r.key, r.label, r.plugin) for r in rows] == [
            ("orders:read", "Read orders", "shop"),
            ("orders:write", "orders:write", None),
        ]

    @pytest.mark.asyncio
    async def test_sync_never_updates_existing_rows(self, registry, session_factory):
        async with session_factory() as session:
            session.add(Permission(key="orders:read", label="Stored label"))
            await session.commit()

        registry.register("orders:read", "New label")
        created = await registry.sync_to_database()

        assert created == 0
        rows = await stored_permissions(session_factory)
        assert rows[0].label == "Stored label"

    @pytest.mark.asyncio
    async def test_init_loads_stored_permissions(self, registry, session_factory):
        async with session_factory() as session:
            session.add(Permission(key="orders:read", label="Read orders", plugin="shop"))
            await session.commit()

        await registry.init_from_database()

        entry = registry.get("orders:read")
        assert entry.label == "Read orders"
        assert entry.plugin == "shop"

    @pytest.mark.asyncio
    async def test_init_runs_once_until_cleared(self, registry, session_factory):
        await registry.init_from_database()

        async with session_factory() as session:
            session.add(Permission(key="late:permission", label="Late"))
            await session.commit()

        await registry.init_from_database()
        assert not registry.has("late:permission")

        registry.clear()
        await registry.init_from_database()
        assert registry.has("late:permission")
