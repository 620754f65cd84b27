"""
Permission registry.

Canonical in-memory catalog of known permission keys, loadable from and
synchronizable to the permissions table.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lattice.core.database.engine import storage_errors
from lattice.core.errors import ValidationError
from lattice.features.permissions.models import Permission
from lattice.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class RegisteredPermission:
    key: str
    label: str
    plugin: Optional[str] = None


class PermissionRegistry:
    """
    Registry of permission keys.

    Registration is idempotent: the first registration of a key wins and later
    registrations of the same key are ignored, including their labels.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self._entries: Dict[str, RegisteredPermission] = {}
        self._initialized = False

    def register(self, key: str, label: Optional[str] = None, plugin: Optional[str] = None) -> None:
        """
        Register a permission.

        Args:
            key: Unique permission key (e.g. "users:read")
            label: Human-readable description, defaults to the key
            plugin: Optional name of the plugin contributing the permission

        Raises:
            ValidationError: if key is empty
        """
        if not key:
            raise ValidationError("Permission key is required", {"field": "key"})
        if key in self._entries:
            return
        self._entries[key] = RegisteredPermission(key=key, label=label or key, plugin=plugin)

    def list(self) -> List[RegisteredPermission]:
        """All registered permissions sorted by key."""
        return sorted(self._entries.values(), key=lambda entry: entry.key)

    def get(self, key: str) -> Optional[RegisteredPermission]:
        return self._entries.get(key)

    def has(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        """Drop all entries and allow init_from_database to run again."""
        self._entries.clear()
        self._initialized = False

    async def init_from_database(self) -> None:
        """
        Load every persisted permission into memory.

        Runs at most once per registry instance; later calls are no-ops until
        clear() is called. Stored rows replace in-memory entries with the same key.
        """
        if self._initialized:
            return

        async with self.session_factory() as session:
            with storage_errors("load permission registry"):
                result = await session.execute(select(Permission))
                rows = result.scalars().all()

        for row in rows:
            self._entries[row.key] = RegisteredPermission(key=row.key, label=row.label, plugin=row.plugin)
        self._initialized = True
        log.info(f"Permission registry loaded {len(rows)} permissions from database")

    async def sync_to_database(self) -> int:
        """
        Create rows for registered permissions missing from storage.

        Existing rows are never updated.

        Returns:
            Number of permissions created
        """
        created = 0
        async with self.session_factory() as session:
            with storage_errors("sync permission registry"):
                result = await session.execute(select(Permission.key))
                in_db = set(result.scalars().all())

                for entry in self._entries.values():
                    if entry.key in in_db:
                        continue
                    session.add(Permission(key=entry.key, label=entry.label, plugin=entry.plugin))
                    created += 1

                await session.commit()

        if created:
            log.info(f"Permission registry created {created} permissions in database")
        return created
