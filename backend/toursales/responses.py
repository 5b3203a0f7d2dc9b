# Overview: JSON helpers shared by the API routes.

from flask import request, jsonify, current_app

from .errors import TourSalesError, ValidationError


def json_body(*, required: bool = True):
    """
    Parsed JSON body. Malformed JSON is a 400 INVALID_JSON_FORMAT; an absent
    body is None, or a ValidationError when ``required``.
    """
    payload = request.get_json(silent=True)
    if payload is None and request.get_data(cache=True):
        raise ValidationError("Invalid JSON format", code="INVALID_JSON_FORMAT")
    if payload is None and required:
        raise ValidationError("Invalid JSON payload")
    return payload


def error_response(exc: TourSalesError):
    return jsonify(exc.to_dict()), exc.status_code


def internal_error_response(exc: Exception, context: str):
    """500 body; the exception text is only shown in development."""
    current_app.logger.exception(context)
    message = "Internal server error"
    if current_app.config.get("APP_ENV") == "development":
        message = str(exc) or message
    return jsonify({"error": "INTERNAL_ERROR", "message": message}), 500
