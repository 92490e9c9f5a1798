# backend/stockpilot/routes/responses.py
"""
Response envelope shared by every blueprint.

Success: {"success": true, ...payload}
Failure: {"success": false, "error": <message>, "code": <code>, "details": {...}}
"""
from flask import current_app, jsonify, request

from ..errors import DomainError
from ..validation import coerce_optional_int


def ok(status: int = 200, **payload):
    body = {"success": True}
    body.update(payload)
    return jsonify(body), status


def error_response(e: DomainError):
    return jsonify(e.to_dict()), e.http_status


def server_error(log_message: str):
    """Log the active exception and return a generic 500."""
    current_app.logger.exception("%s (%s %s)", log_message, request.method, request.path)
    return jsonify({
        "success": False,
        "error": "Internal server error",
        "code": "internal_error",
        "details": {},
    }), 500


def query_int(name: str):
    """Optional integer query parameter; raises ValidationError on garbage."""
    return coerce_optional_int(name, request.args.get(name))
