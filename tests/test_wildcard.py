"""
Tests for hierarchical wildcard matching.
"""
import pytest

from lattice.features.permissions.wildcard import PermissionPattern, is_allowed, permission_matches


class TestPermissionMatches:
    """Single pattern against a single required key."""

    @pytest.mark.parametrize("key", ["orders:read", "users", "org:123:members:invite"])
    def test_exact_key_matches_itself(self, key):
        assert permission_matches(key, key) is True

    @pytest.mark.parametrize(
        "pattern, permission",
        [
            ("orders:read", "orders:write"),
            ("orders:read", "orders"),
            ("orders", "orders:read"),
            ("org:123:read", "org:456:read"),
        ],
    )
    def test_patterns_without_wildcard_only_match_equal_keys(self, pattern, permission):
        assert permission_matches(pattern, permission) is False

    def test_trailing_wildcard_matches_same_prefix(self):
        assert permission_matches("org:123:*", "org:123:read") is True

    def test_trailing_wildcard_rejects_other_prefix(self):
        assert permission_matches("org:123:*", "org:456:read") is False

    def test_trailing_wildcard_absorbs_deeper_segments(self):
        assert permission_matches("users:*", "users:roles:assign") is True

    def test_bare_wildcard_matches_everything(self):
        assert permission_matches("*", "billing:invoices:void") is True

    def test_wildcard_stops_matching_at_first_star(self):
        # segments after "*" are ignored
        assert permission_matches("admin:*:delete", "admin:users:read") is True

    def test_pattern_longer_than_permission(self):
        assert permission_matches("orders:read:own", "orders:read") is False


class TestIsAllowed:
    """Required key against a granted set."""

    def test_exact_membership(self):
        assert is_allowed("orders:read", {"orders:read", "orders:write"}) is True

    def test_missing_permission(self):
        assert is_allowed("orders:delete", {"orders:read", "orders:write"}) is False

    def test_empty_grant_set(self):
        assert is_allowed("orders:read", set()) is False

    def test_wildcard_grant(self):
        assert is_allowed("orders:refunds:issue", {"users:read", "orders:*"}) is True

    def test_non_matching_wildcard_grant(self):
        assert is_allowed("orders:read", {"users:*"}) is False

    def test_accepts_any_iterable(self):
        assert is_allowed("orders:read", ["users:read", "orders:*"]) is True


class TestPermissionPattern:

    def test_parse_splits_segments(self):
        pattern = PermissionPattern.parse("org:123:*")
        assert pattern.segments == ("org", "123", "*")
        assert pattern.has_wildcard is True

    def test_plain_key_has_no_wildcard(self):
        assert PermissionPattern.parse("orders:read").has_wildcard is False
