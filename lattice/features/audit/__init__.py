"""
Audit feature module: the sink for permission-check and management events.
"""
