"""
Interaction Tracking Routes

Flask routes for recording interactions and stated preferences.
"""

import logging

from flask import Blueprint, jsonify

from personalization_service import PersonalizationService
from personalization_service.errors import InvalidRequest
from personalization_service.models import Demographics

from ..payloads import bad_request, parse_payload, read_json
from .models import PreferencesBody, TrackBody

logger = logging.getLogger(__name__)


def create_interactions_blueprint(service: PersonalizationService) -> Blueprint:
    """Create a Flask blueprint for interaction routes.

    Args:
        service: The personalization service recording interactions

    Returns:
        Flask blueprint with tracking and preference routes
    """
    bp = Blueprint('interactions', __name__, url_prefix='/interactions')

    @bp.route("/track", methods=["POST"])
    def track():
        """Record one interaction. Cache invalidation happens in the background."""
        try:
            body = parse_payload(TrackBody, read_json())
            service.track_interaction(
                body.user_id,
                body.article_id,
                body.action,
                duration_seconds=body.duration_seconds,
                scroll_depth=body.scroll_depth,
            )
        except InvalidRequest as e:
            return bad_request(e)
        return jsonify({"success": True}), 201

    @bp.route("/preferences", methods=["POST"])
    def preferences():
        """Store stated interests and demographics used by cold start."""
        try:
            body = parse_payload(PreferencesBody, read_json())
            demographics = Demographics.from_dict(body.demographics) if body.demographics is not None else None
            profile = service.update_preferences(body.user_id, body.stated_interests, demographics)
        except (InvalidRequest, ValueError) as e:
            return bad_request(e)
        logger.info(f"Updated preferences for {body.user_id}")
        return jsonify({
            "success": True,
            "preferredCategories": profile.preferred_categories,
        })

    return bp
