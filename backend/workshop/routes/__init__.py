# Overview: Shared helpers for API blueprints.

from flask import current_app, jsonify

from ..errors import WorkshopError
from ..validation import parse_uuid


def error_response(exc: WorkshopError, action: str):
    """Translate a domain error into a JSON response; 5xx errors are logged."""
    if exc.status >= 500:
        current_app.logger.error("Failed to %s: %s", action, exc.message)
    body, status = exc.to_response()
    return jsonify(body), status


def internal_error(action: str):
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500


def parse_ids(*values) -> list[str]:
    return [parse_uuid(value) for value in values]
