"""
Generation Routes

Flask routes for AI-generated text about articles.
"""

import logging

from flask import Blueprint, jsonify

from personalization_service import PersonalizationService
from personalization_service.errors import InvalidRequest, NotFound

from ..payloads import bad_request, parse_payload, read_json
from .models import GenerateBody

logger = logging.getLogger(__name__)


def create_generate_blueprint(service: PersonalizationService) -> Blueprint:
    """Create a Flask blueprint for generation routes.

    Args:
        service: The personalization service answering requests

    Returns:
        Flask blueprint with generation and status routes
    """
    bp = Blueprint('generate', __name__)

    @bp.route("/generate", methods=["POST"])
    def generate():
        """Summarize, answer a question about, or explain an article."""
        try:
            body = parse_payload(GenerateBody, read_json())
            response = service.generate(
                body.kind,
                body.article_id,
                user_id=body.user_id,
                question=body.question,
                length=body.length,
            )
        except InvalidRequest as e:
            logger.info(f"Rejected generation request: {e}")
            return bad_request(e)
        return jsonify(response.to_api())

    @bp.route("/generate/status/<request_id>", methods=["GET"])
    def generation_status(request_id: str):
        """Poll the status of an earlier generation request."""
        try:
            status = service.status(request_id)
        except NotFound:
            return jsonify({"status": "unknown", "requestId": request_id}), 404
        return jsonify({"requestId": request_id, **status})

    return bp
