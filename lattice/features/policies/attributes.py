"""
Attribute providers for ABAC evaluation.

Applications supply richer attributes (profile fields, resource ownership,
request metadata) by implementing AttributeProvider.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from lattice.core.scope import ContextRef


class AttributeProvider(ABC):
    @abstractmethod
    async def get_user_attributes(self, user_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def get_resource_attributes(self, resource: Optional[ContextRef]) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    async def get_environment_attributes(self) -> Dict[str, Any]:
        raise NotImplementedError


class DefaultAttributeProvider(AttributeProvider):
    """Minimal identity attributes."""

    async def get_user_attributes(self, user_id: str) -> Dict[str, Any]:
        return {"id": user_id}

    async def get_resource_attributes(self, resource: Optional[ContextRef]) -> Dict[str, Any]:
        if resource is None:
            return {}
        return {"type": resource.type, "id": resource.id}

    async def get_environment_attributes(self) -> Dict[str, Any]:
        return {"time": datetime.now(timezone.utc).isoformat()}
