# Overview: Flask API routes for login delegation and lockout status.

# backend/toursales/routes/auth.py
"""
Authentication API routes

Credentials are checked by the external identity service; this service only
relays its payload and throttles repeated failures per email.
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import AuthError, TourSalesError
from ..responses import json_body
from ..services import login_throttle_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


def _locked_response(seconds_remaining: int | None):
    minutes_remaining = (seconds_remaining // 60) + 1 if seconds_remaining else None
    return jsonify({
        "success": False,
        "message": "Account temporarily locked due to too many failed login attempts",
        "locked": True,
        "retry_after_seconds": seconds_remaining,
        "retry_after_minutes": minutes_remaining,
    }), 429


@auth_bp.post("/login")
def login_route():
    """
    Delegate login to the identity service.

    Returns:
    - 200 {"success": true, "data": <identity payload>}
    - 401 {"success": false, "message": ...} on any delegation failure
    - 429 while the email is locked out
    """
    try:
        data = json_body(required=False) or {}
    except TourSalesError as e:
        return jsonify({"success": False, "message": e.message}), 400
    if not isinstance(data, dict):
        return jsonify({"success": False, "message": "Request body must be a JSON object"}), 400

    email = data.get("email")
    password = data.get("password")
    if not isinstance(email, str) or not email.strip() or not isinstance(password, str) or not password:
        return jsonify({"success": False, "message": "email and password required"}), 400

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    try:
        is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
        if is_locked:
            return _locked_response(seconds_remaining)

        identity = current_app.extensions["identity_service"]
        try:
            payload = identity.login(email.strip(), password)
        except AuthError as e:
            current_app.logger.info("Login failed for %s: %s", email, e.message)
            failed_count = login_throttle_service.record_failed_attempt(
                identifier=email,
                ip_address=ip_address,
                user_agent=user_agent,
                reason=e.message,
            )

            remaining = current_app.config["LOGIN_MAX_FAILED_ATTEMPTS"] - failed_count
            if remaining <= 0:
                _, seconds_remaining = login_throttle_service.is_account_locked(email)
                return _locked_response(seconds_remaining)

            body = {"success": False, "message": e.message or "Login failed"}
            if remaining <= 3:
                body["warning"] = f"{remaining} attempts remaining before account lockout"
            return jsonify(body), 401

        login_throttle_service.record_successful_login(
            identifier=email,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        current_app.logger.info("Login succeeded for %s", email)
        return jsonify({"success": True, "data": payload}), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"success": False, "message": "Internal server error"}), 500


@auth_bp.get("/lockout-status/<identifier>")
def lockout_status_route(identifier: str):
    """Public: lets a user see whether their email is locked and for how long."""
    return jsonify(login_throttle_service.get_lockout_status(identifier))
