"""
Input validation helpers for management operations.
"""
from lattice.core.errors import ValidationError


def validate_string(value, field: str) -> str:
    """Require a non-blank string, returning it stripped."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", {"field": field})
    return value.strip()


def validate_permission_key(key) -> str:
    """
    Validate a colon-segmented permission key such as "orders:read" or "org:*".

    Raises:
        ValidationError: if the key is empty, contains whitespace or has an
            empty segment ("orders::read", ":read").
    """
    if not isinstance(key, str) or not key:
        raise ValidationError("Permission key is required", {"field": "key"})
    if any(ch.isspace() for ch in key):
        raise ValidationError(f"Permission key {key!r} must not contain whitespace", {"key": key})
    if any(segment == "" for segment in key.split(":")):
        raise ValidationError(f"Permission key {key!r} has an empty segment", {"key": key})
    return key


def validate_pagination(limit: int, offset: int) -> None:
    if limit < 1 or limit > 1000:
        raise ValidationError("Limit must be between 1 and 1000", {"limit": limit})
    if offset < 0:
        raise ValidationError("Offset must be non-negative", {"offset": offset})
