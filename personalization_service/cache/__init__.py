"""
Response cache and cache-key helpers.
"""

from .keys import KINDS, QA, REASON, RECOMMENDATIONS, SUMMARIZE, make_key, ttl_for
from .response_cache import CacheLookup, ResponseCache

__all__ = [
    "CacheLookup",
    "KINDS",
    "QA",
    "REASON",
    "RECOMMENDATIONS",
    "ResponseCache",
    "SUMMARIZE",
    "make_key",
    "ttl_for",
]
