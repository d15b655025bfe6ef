"""
Factory for creating the recommendation module.
"""
from personalization_service import PersonalizationService

from .routes import create_recommend_blueprint


def create_recommend_module(service: PersonalizationService) -> dict:
    """Create recommendation module with service and routes.

    Returns:
        Dictionary containing the service and blueprint
    """
    return {
        "service": service,
        "blueprint": create_recommend_blueprint(service)
    }
