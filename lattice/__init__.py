"""
Lattice: embeddable RBAC/ABAC authorization engine for multi-tenant applications.
"""
__version__ = "0.1.0"
