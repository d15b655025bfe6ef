"""
Generation Subsystem

HTTP surface for article summaries, questions and recommendation reasons.
"""

from .factory import create_generate_module
from .models import GenerateBody

__all__ = ['create_generate_module', 'GenerateBody']
