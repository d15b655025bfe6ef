"""
Request body helpers shared by the JSON blueprints.
"""

import json
from typing import Any, Dict, Type, TypeVar

from flask import jsonify, request
from pydantic import BaseModel, ValidationError

from personalization_service.errors import InvalidRequest

M = TypeVar("M", bound=BaseModel)


def read_json() -> Dict[str, Any]:
    """Return the request body as a dict, tolerating a missing content type."""
    data = request.get_json(silent=True)
    if data is None:
        raw = request.get_data(as_text=True) or "{}"
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidRequest(f"Request body is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return data


def parse_payload(model: Type[M], data: Dict[str, Any]) -> M:
    """Validate ``data`` against ``model``, reporting the first error as InvalidRequest."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise InvalidRequest(f"{location}: {first.get('msg', 'invalid value')}") from e


def bad_request(error: Exception):
    return jsonify({"success": False, "error": str(error)}), 400
