"""
Interaction Tracking Subsystem

Records reading behaviour and preference changes that feed personalization.
"""

from .factory import create_interactions_module
from .models import PreferencesBody, TrackBody

__all__ = ['create_interactions_module', 'PreferencesBody', 'TrackBody']
