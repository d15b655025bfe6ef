"""
Recommendation Subsystem

HTTP surface for ranked, per-user article recommendations.
"""

from .factory import create_recommend_module
from .models import RecommendBody

__all__ = ['create_recommend_module', 'RecommendBody']
