"""
Flask application for the feed personalization service.

``create_app()`` assembles the personalization core from configuration and
registers one blueprint per subsystem.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

sys.path.append(str(Path(__file__).parent.parent))
from config_manager import ConfigManager

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from personalization_service import PersonalizationService, build_service

from app.cache_admin.factory import create_cache_admin_module
from app.generate.factory import create_generate_module
from app.interactions.factory import create_interactions_module
from app.recommend.factory import create_recommend_module

logger = logging.getLogger(__name__)

SERVICE_NAME = "feed-personalization"


def create_app(
    config: Optional[ConfigManager] = None,
    service: Optional[PersonalizationService] = None,
) -> Flask:
    """Create the Flask application.

    Args:
        config: Configuration to build from; a default ``ConfigManager`` when omitted
        service: Prebuilt service, used by tests to inject fakes

    Returns:
        Configured Flask application
    """
    config = config or ConfigManager()
    app_config = config.get_app_config()
    if service is None:
        service = build_service(config)

    app = Flask(__name__)
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_proto=1,      # trust 1 hop for X-Forwarded-Proto
        x_host=1,       # trust 1 hop for X-Forwarded-Host
        x_prefix=1)     # trust 1 hop for X-Forwarded-Prefix
    app.extensions["personalization_service"] = service

    # -------------------------------------------------------------------------
    # Subsystems
    # -------------------------------------------------------------------------

    recommend_module = create_recommend_module(service)
    generate_module = create_generate_module(service)
    interactions_module = create_interactions_module(service)
    cache_admin_module = create_cache_admin_module(service, app_config.cache_invalidation_secret)

    app.register_blueprint(recommend_module["blueprint"])
    app.register_blueprint(generate_module["blueprint"])
    app.register_blueprint(interactions_module["blueprint"])
    app.register_blueprint(cache_admin_module["blueprint"])

    if not app_config.cache_invalidation_secret:
        logger.warning("CACHE_INVALIDATION_SECRET is not set; /cache/invalidate will reject every request")

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @app.get("/health")
    def health():
        """Health check endpoint for monitoring tools and load balancers."""
        return jsonify({"service": SERVICE_NAME, **service.health()}), 200

    return app
