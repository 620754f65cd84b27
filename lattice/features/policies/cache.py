"""
Time-bounded single-slot cache for ABAC policies.
"""
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from lattice.features.policies.models import AbacPolicy


DEFAULT_TTL_MS = 30_000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _CacheSlot:
    policies: List[AbacPolicy]
    expires_at_ms: int


class PolicyCache:
    """
    Caches the full policy list for `ttl_ms` milliseconds.

    load() refetches when the slot is empty or expired and otherwise returns
    the same list object. invalidate() must be called by every policy
    mutation; reads never invalidate.

    Two callers missing at the same time may both fetch and both overwrite the
    slot. The last writer wins; there is no single-flight lock.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[List[AbacPolicy]]],
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Callable[[], int] = now_ms
    ):
        self.loader = loader
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._slot: Optional[_CacheSlot] = None

    async def load(self) -> List[AbacPolicy]:
        now = self.clock()
        slot = self._slot
        if slot is None or now > slot.expires_at_ms:
            policies = await self.loader()
            slot = _CacheSlot(policies=policies, expires_at_ms=now + self.ttl_ms)
            self._slot = slot
        return slot.policies

    def invalidate(self) -> None:
        self._slot = None

    @property
    def is_populated(self) -> bool:
        return self._slot is not None
