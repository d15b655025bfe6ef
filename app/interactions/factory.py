"""
Factory for creating the interaction tracking module.
"""
from personalization_service import PersonalizationService

from .routes import create_interactions_blueprint


def create_interactions_module(service: PersonalizationService) -> dict:
    """Create interaction tracking module with service and routes.

    Returns:
        Dictionary containing the service and blueprint
    """
    return {
        "service": service,
        "blueprint": create_interactions_blueprint(service)
    }
