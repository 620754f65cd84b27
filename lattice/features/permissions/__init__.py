"""
Permission feature module.

Implements the permission registry, wildcard matching, direct grants and the
effective permission resolver for context-scoped RBAC.
"""
