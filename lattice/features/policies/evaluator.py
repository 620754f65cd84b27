"""
ABAC evaluation with deny-override combination.
"""
from typing import Optional

from lattice.core.errors import ConditionEvaluationError
from lattice.core.scope import ContextRef
from lattice.features.policies.attributes import AttributeProvider, DefaultAttributeProvider
from lattice.features.policies.cache import PolicyCache
from lattice.features.policies.conditions import CelConditionEvaluator, ConditionEvaluator
from lattice.features.policies.models import DENY, PERMIT
from lattice.utils import get_logger


log = get_logger(__name__)


class AbacEvaluator:
    """
    Evaluate the ABAC policies targeting an (action, resource) pair.

    - no policy targets the pair: `default_decision` (permit unless configured)
    - any matching deny policy: deny, remaining policies are skipped
    - otherwise: permit if at least one permit policy matched
    A policy whose condition cannot be evaluated is logged and skipped.
    """

    def __init__(
        self,
        cache: PolicyCache,
        attribute_provider: Optional[AttributeProvider] = None,
        condition_evaluator: Optional[ConditionEvaluator] = None,
        default_decision: bool = True
    ):
        self.cache = cache
        self.attribute_provider = attribute_provider or DefaultAttributeProvider()
        self.condition_evaluator = condition_evaluator or CelConditionEvaluator()
        self.default_decision = default_decision

    async def evaluate(self, action: str, resource: str, resource_id: Optional[str], user_id: str) -> bool:
        policies = await self.cache.load()
        relevant = [p for p in policies if p.action == action and p.resource == resource]
        if not relevant:
            log.debug(f"No ABAC policies for {action} on {resource}, default decision {self.default_decision}")
            return self.default_decision

        attributes = {
            "user": await self.attribute_provider.get_user_attributes(user_id),
            "resource": await self.attribute_provider.get_resource_attributes(ContextRef(resource, resource_id)),
            "environment": await self.attribute_provider.get_environment_attributes(),
        }

        permit = False
        for policy in relevant:
            try:
                matched = self.condition_evaluator.evaluate(policy.condition, attributes)
            except ConditionEvaluationError as e:
                log.warning(f"Skipping ABAC policy {policy.id}: {e.message}")
                continue

            log.debug(f"ABAC policy {policy.id} ({policy.effect}) matched={matched}")
            if not matched:
                continue
            if policy.effect == DENY:
                log.debug(f"ABAC deny override from policy {policy.id}")
                return False
            if policy.effect == PERMIT:
                permit = True

        return permit
