"""
Role management feature module.
"""
