"""
Recommendation Routes

Flask routes for serving recommendations.
"""

import logging

from flask import Blueprint, jsonify

from personalization_service import PersonalizationService
from personalization_service.errors import InvalidRequest

from ..payloads import bad_request, parse_payload, read_json
from .models import RecommendBody

logger = logging.getLogger(__name__)


def create_recommend_blueprint(service: PersonalizationService) -> Blueprint:
    """Create a Flask blueprint for recommendation routes.

    Args:
        service: The personalization service answering requests

    Returns:
        Flask blueprint with the recommendation route
    """
    bp = Blueprint('recommend', __name__)

    @bp.route("/recommend", methods=["POST"])
    def recommend():
        """Rank articles for a user."""
        try:
            body = parse_payload(RecommendBody, read_json())
            response = service.recommend(
                body.user_id,
                max_results=body.max_results,
                categories=body.categories,
                exclude_read_articles=body.exclude_read_articles,
            )
        except InvalidRequest as e:
            logger.info(f"Rejected recommendation request: {e}")
            return bad_request(e)
        return jsonify(response.to_dict())

    return bp
