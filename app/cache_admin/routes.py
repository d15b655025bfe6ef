"""
Cache Administration Routes

Flask routes for invalidating cached responses. Guarded by a shared secret
sent as a bearer token.
"""

import hmac
import logging
from functools import wraps
from typing import Callable

from flask import Blueprint, jsonify, request

from personalization_service import PersonalizationService
from personalization_service.errors import InvalidRequest

from ..payloads import bad_request, parse_payload, read_json
from .models import InvalidateBody

logger = logging.getLogger(__name__)


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def create_cache_admin_blueprint(service: PersonalizationService, secret: str) -> Blueprint:
    """Create cache administration blueprint with routes.

    Args:
        service: The personalization service owning the cache
        secret: Shared secret expected as the bearer token; an empty secret
            rejects every request

    Returns:
        Flask blueprint with the invalidation route
    """
    blueprint = Blueprint('cache_admin', __name__, url_prefix='/cache')

    def secret_required(f: Callable) -> Callable:
        """Decorator to require the shared invalidation secret."""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            token = _bearer_token()
            if not secret or not token or not hmac.compare_digest(token, secret):
                logger.warning(f"Unauthorized cache invalidation attempt from {request.remote_addr}")
                return jsonify({"success": False, "error": "unauthorized"}), 401
            return f(*args, **kwargs)
        return decorated_function

    @blueprint.route('/invalidate', methods=['POST'])
    @secret_required
    def invalidate():
        """Remove cached entries matching an article, user or kind."""
        try:
            body = parse_payload(InvalidateBody, read_json())
            removed = service.invalidate(article_id=body.article_id, user_id=body.user_id, kind=body.type)
        except InvalidRequest as e:
            return bad_request(e)
        return jsonify({"success": True, "removed": removed})

    return blueprint
