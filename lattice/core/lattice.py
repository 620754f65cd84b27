"""
Composition root for the authorization engine.

Usage:
    core = LatticeCore()
    await core.startup()

    await core.permissions.grant_to_user("user_1", "orders:read")
    allowed = await core.check_access("user_1", "orders:read")
"""
import inspect
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lattice.core import config
from lattice.core.errors import ValidationError
from lattice.core.scope import ContextRef, ScopeHint
from lattice.features.access.service import AccessService
from lattice.features.audit.service import AuditService
from lattice.features.contexts.service import ContextService
from lattice.features.permissions.effective import EffectivePermissionResolver
from lattice.features.permissions.registry import PermissionRegistry
from lattice.features.permissions.service import PermissionService
from lattice.features.policies.attributes import AttributeProvider
from lattice.features.policies.conditions import ConditionEvaluator
from lattice.features.policies.evaluator import AbacEvaluator
from lattice.features.policies.models import DENY, PERMIT
from lattice.features.policies.service import PolicyService
from lattice.features.roles.service import RoleService
from lattice.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class PluginPermission:
    key: str
    label: Optional[str] = None


@dataclass
class LatticePlugin:
    """
    A bundle of permissions contributed by an extension.

    `register` runs once, after the plugin's permissions are in the registry.
    """
    name: str
    permissions: List[PluginPermission] = field(default_factory=list)
    register: Optional[Callable[["LatticeCore"], Union[None, Awaitable[None]]]] = None


def parse_default_decision(value: Union[bool, str]) -> bool:
    if isinstance(value, bool):
        return value
    if value == PERMIT:
        return True
    if value == DENY:
        return False
    raise ValidationError(f"ABAC default decision must be '{PERMIT}' or '{DENY}'", {"value": value})


class LatticeCore:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        attribute_provider: Optional[AttributeProvider] = None,
        condition_evaluator: Optional[ConditionEvaluator] = None,
        policy_cache_ttl_ms: int = config.POLICY_CACHE_TTL_MS,
        abac_default_decision: Union[bool, str] = config.ABAC_DEFAULT_DECISION,
        audit_enabled: bool = config.AUDIT_ENABLED
    ):
        if session_factory is None:
            from lattice.core.database.engine import AsyncSessionLocal
            session_factory = AsyncSessionLocal

        self.session_factory = session_factory
        self.plugins: List[LatticePlugin] = []

        self.registry = PermissionRegistry(session_factory)
        self.audit = AuditService(session_factory, enabled=audit_enabled)
        self.contexts = ContextService(session_factory, self.audit)
        self.roles = RoleService(session_factory, self.audit)
        self.permissions = PermissionService(session_factory, self.audit)
        self.policies = PolicyService(session_factory, self.audit, cache_ttl_ms=policy_cache_ttl_ms)

        self.resolver = EffectivePermissionResolver(session_factory)
        self.evaluator = AbacEvaluator(
            self.policies.cache,
            attribute_provider=attribute_provider,
            condition_evaluator=condition_evaluator,
            default_decision=parse_default_decision(abac_default_decision),
        )
        self.access = AccessService(self.resolver, self.evaluator, self.audit)

    async def startup(self) -> None:
        """Load the permission registry and persist any keys registered before startup."""
        await self.registry.init_from_database()
        await self.registry.sync_to_database()
        log.info(f"Lattice started with {len(self.registry)} permissions and {len(self.plugins)} plugins")

    async def check_access(
        self,
        user_id: str,
        permission: str,
        context: Optional[ContextRef] = None,
        scope: Optional[Union[ScopeHint, str]] = None,
        context_type: Optional[str] = None
    ) -> bool:
        return await self.access.check_access(user_id, permission, context, scope=scope, context_type=context_type)

    async def register_plugin(self, plugin: LatticePlugin) -> None:
        """
        Register a plugin's permissions, tagged with the plugin name, then run its hook.

        The plugin is recorded only once its hook returns, so a plugin whose
        hook raised can be registered again.

        Raises:
            ValidationError: if the plugin has no name or is already registered
        """
        if not plugin.name:
            raise ValidationError("Plugin name is required")
        if any(p.name == plugin.name for p in self.plugins):
            raise ValidationError(f"Plugin '{plugin.name}' is already registered")

        for permission in plugin.permissions:
            self.registry.register(permission.key, permission.label, plugin=plugin.name)

        if plugin.register is not None:
            result = plugin.register(self)
            if inspect.isawaitable(result):
                await result
        self.plugins.append(plugin)
        log.info(f"Registered plugin {plugin.name} with {len(plugin.permissions)} permissions")
