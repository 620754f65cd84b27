"""
ABAC policy persistence.

Every create, update and delete invalidates the policy cache before
returning.
"""
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lattice.core.database.engine import storage_errors
from lattice.core.errors import NotFoundError, ValidationError
from lattice.core.validation import validate_string
from lattice.features.audit.service import AuditService
from lattice.features.policies.cache import DEFAULT_TTL_MS, PolicyCache
from lattice.features.policies.models import EFFECTS, AbacPolicy


def validate_effect(effect) -> str:
    if effect not in EFFECTS:
        raise ValidationError(f"Effect must be one of {list(EFFECTS)}", {"effect": effect})
    return effect


class PolicyService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        audit: AuditService,
        cache_ttl_ms: int = DEFAULT_TTL_MS
    ):
        self.session_factory = session_factory
        self.audit = audit
        self.cache = PolicyCache(self.list_policies, ttl_ms=cache_ttl_ms)

    async def create_policy(
        self,
        action: str,
        resource: str,
        condition: str,
        effect: str,
        actor_id: Optional[str] = None
    ) -> AbacPolicy:
        """
        Create a policy.

        Raises:
            ValidationError: if a field is blank or effect is not permit/deny
        """
        policy = AbacPolicy(
            action=validate_string(action, "action"),
            resource=validate_string(resource, "resource"),
            condition=validate_string(condition, "condition"),
            effect=validate_effect(effect),
        )
        async with self.session_factory() as session:
            with storage_errors("create policy"):
                session.add(policy)
                await session.commit()
                await session.refresh(policy)
        self.cache.invalidate()

        await self.audit.log(
            "policy.created",
            actor_id=actor_id,
            resource_type="policy",
            resource_id=policy.id,
            details={"action": policy.action, "resource": policy.resource, "effect": policy.effect},
        )
        return policy

    async def get_policy(self, id: str) -> Optional[AbacPolicy]:
        policy_id = validate_string(id, "policy id")
        async with self.session_factory() as session:
            with storage_errors("get policy"):
                return await session.get(AbacPolicy, policy_id)

    async def list_policies(self) -> List[AbacPolicy]:
        """All policies in insertion order."""
        async with self.session_factory() as session:
            with storage_errors("list policies"):
                result = await session.execute(select(AbacPolicy).order_by(AbacPolicy.created_at, AbacPolicy.id))
                return list(result.scalars().all())

    async def update_policy(
        self,
        id: str,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        condition: Optional[str] = None,
        effect: Optional[str] = None,
        actor_id: Optional[str] = None
    ) -> AbacPolicy:
        """
        Update the supplied fields of a policy.

        Raises:
            NotFoundError: if the policy does not exist
            ValidationError: if a supplied field is invalid
        """
        policy_id = validate_string(id, "policy id")
        updates = {}
        if action is not None:
            updates["action"] = validate_string(action, "action")
        if resource is not None:
            updates["resource"] = validate_string(resource, "resource")
        if condition is not None:
            updates["condition"] = validate_string(condition, "condition")
        if effect is not None:
            updates["effect"] = validate_effect(effect)

        async with self.session_factory() as session:
            with storage_errors("update policy"):
                policy = await session.get(AbacPolicy, policy_id)
                if policy is None:
                    raise NotFoundError("Policy", policy_id)
                for key, value in updates.items():
                    setattr(policy, key, value)
                await session.commit()
                await session.refresh(policy)
        self.cache.invalidate()

        await self.audit.log(
            "policy.updated",
            actor_id=actor_id,
            resource_type="policy",
            resource_id=policy_id,
            details=updates,
        )
        return policy

    async def delete_policy(self, id: str, actor_id: Optional[str] = None) -> None:
        """
        Raises:
            NotFoundError: if the policy does not exist
        """
        policy_id = validate_string(id, "policy id")
        async with self.session_factory() as session:
            with storage_errors("delete policy"):
                policy = await session.get(AbacPolicy, policy_id)
                if policy is None:
                    raise NotFoundError("Policy", policy_id)
                await session.delete(policy)
                await session.commit()
        self.cache.invalidate()

        await self.audit.log("policy.deleted", actor_id=actor_id, resource_type="policy", resource_id=policy_id)
