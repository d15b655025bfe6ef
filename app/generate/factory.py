"""
Factory for creating the generation module.
"""
from personalization_service import PersonalizationService

from .routes import create_generate_blueprint


def create_generate_module(service: PersonalizationService) -> dict:
    """Create generation module with service and routes.

    Returns:
        Dictionary containing the service and blueprint
    """
    return {
        "service": service,
        "blueprint": create_generate_blueprint(service)
    }
