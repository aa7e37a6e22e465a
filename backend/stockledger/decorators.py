# Overview: Request decorators for API routes.

from functools import wraps
import hmac

from flask import current_app, jsonify, request


def require_admin(f):
    """
    Require the configured admin token as a Bearer credential.

    When ADMIN_TOKEN is unset the API is open; the service is then expected
    to sit behind the host's own admin authentication.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("ADMIN_TOKEN")
        if not expected:
            return f(*args, **kwargs)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not hmac.compare_digest(token.encode(), str(expected).encode()):
            return jsonify({"error": "Invalid token"}), 401

        return f(*args, **kwargs)

    return decorated_function
