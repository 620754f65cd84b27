"""
Access decision feature module: combines RBAC resolution with ABAC evaluation.
"""
