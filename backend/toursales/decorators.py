# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import request, jsonify, current_app


def require_basic_auth(f):
    """
    Require HTTP Basic credentials matching BASIC_AUTH_USERNAME / _PASSWORD.

    SECURITY:
    - 500 AUTH_CONFIG_ERROR when the server has no credentials configured
    - 401 with a WWW-Authenticate challenge on missing or wrong credentials
    - Constant-time comparison of both username and password
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected_user = current_app.config.get("BASIC_AUTH_USERNAME")
        expected_password = current_app.config.get("BASIC_AUTH_PASSWORD")
        if not expected_user or not expected_password:
            current_app.logger.error("Basic auth credentials are not configured")
            return jsonify({
                "error": "AUTH_CONFIG_ERROR",
                "message": "Authentication is not configured on the server",
            }), 500

        auth = request.authorization
        if auth is None or auth.type != "basic":
            response = jsonify({"error": "AUTH_ERROR", "message": "Authentication required"})
            response.headers["WWW-Authenticate"] = 'Basic realm="tour-sales"'
            return response, 401

        user_ok = hmac.compare_digest((auth.username or "").encode(), expected_user.encode())
        password_ok = hmac.compare_digest((auth.password or "").encode(), expected_password.encode())
        if not (user_ok and password_ok):
            current_app.logger.warning("Rejected basic auth for %s from %s", auth.username, request.remote_addr)
            response = jsonify({"error": "AUTH_ERROR", "message": "Invalid credentials"})
            response.headers["WWW-Authenticate"] = 'Basic realm="tour-sales"'
            return response, 401

        return f(*args, **kwargs)

    return decorated_function
