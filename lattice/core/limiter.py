"""
Shared slowapi limiter, keyed on the acting user id.
"""
from slowapi import Limiter

from lattice.features.permissions.dependencies import get_user_id_header


limiter = Limiter(key_func=get_user_id_header)
