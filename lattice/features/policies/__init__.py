"""
ABAC policy feature module.

Policies are loaded through a time-bounded cache and evaluated with
deny-override combination after RBAC has allowed a request.
"""
