"""
Factory for creating the cache administration module.
"""
from personalization_service import PersonalizationService

from .routes import create_cache_admin_blueprint


def create_cache_admin_module(service: PersonalizationService, secret: str) -> dict:
    """Create cache administration module with service and routes.

    Args:
        service: The personalization service owning the cache
        secret: Shared bearer secret for invalidation requests

    Returns:
        Dictionary containing the service and blueprint
    """
    return {
        "service": service,
        "blueprint": create_cache_admin_blueprint(service, secret)
    }
