"""
Hierarchical wildcard matching for colon-segmented permission keys.

A trailing "*" segment matches any suffix:
- "users:*" matches "users:read", "users:roles:assign"
- "org:123:*" matches "org:123:read" but not "org:456:read"

"*" is only meaningful as the trailing wildcard; "admin:*:delete" matches
"admin:users:read" as well, because matching stops at the first "*".
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple


WILDCARD = "*"
SEPARATOR = ":"


@dataclass(frozen=True)
class PermissionPattern:
    """A permission key split into its segments."""
    raw: str
    segments: Tuple[str, ...]

    @classmethod
    def parse(cls, key: str) -> "PermissionPattern":
        return cls(raw=key, segments=tuple(key.split(SEPARATOR)))

    @property
    def has_wildcard(self) -> bool:
        return WILDCARD in self.raw

    def matches(self, permission: "PermissionPattern") -> bool:
        if self.raw == permission.raw:
            return True

        pattern_parts = self.segments
        permission_parts = permission.segments
        for i in range(max(len(pattern_parts), len(permission_parts))):
            if i >= len(pattern_parts):
                return False
            if pattern_parts[i] == WILDCARD:
                return True
            if i >= len(permission_parts):
                return False
            if pattern_parts[i] != permission_parts[i]:
                return False

        return True


def permission_matches(pattern: str, permission: str) -> bool:
    """
    Check whether a granted pattern covers a required permission key.

    Example:
        permission_matches("org:123:*", "org:123:read")  # True
        permission_matches("org:123:*", "org:456:read")  # False
    """
    return PermissionPattern.parse(pattern).matches(PermissionPattern.parse(permission))


def is_allowed(required: str, granted: Iterable[str]) -> bool:
    """
    Check a required permission against a collection of granted keys.

    Allowed when the key is granted verbatim or any granted key containing
    "*" matches it. Any single match is sufficient.
    """
    granted = granted if isinstance(granted, (set, frozenset)) else set(granted)
    if required in granted:
        return True

    required_pattern = PermissionPattern.parse(required)
    for key in granted:
        if WILDCARD in key and PermissionPattern.parse(key).matches(required_pattern):
            return True

    return False
