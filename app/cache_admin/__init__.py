"""
Cache Administration Subsystem

Authenticated explicit invalidation of cached responses.
"""

from .factory import create_cache_admin_module
from .models import InvalidateBody

__all__ = ['create_cache_admin_module', 'InvalidateBody']
