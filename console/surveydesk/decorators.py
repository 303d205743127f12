# Overview: Route guard that makes sure a backend bearer token is available.

from functools import wraps
from flask import current_app, g, jsonify, request, session

from .services.api_client import BackendError

SESSION_TOKEN_KEY = "access"


def current_token() -> str | None:
    """Bearer token from the Authorization header, then the session, then config."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return session.get(SESSION_TOKEN_KEY) or current_app.config.get("BACKEND_TOKEN")


def require_token(f):
    """
    Require a backend token before calling the view.

    The token is not validated here; the backend rejects expired ones and the
    route passes that 401 through.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = current_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401
        g.backend_token = token
        return f(*args, **kwargs)

    return decorated_function


def backend_error_status(status_code: int | None) -> int:
    """Backend auth/lookup failures pass through; everything else is a bad gateway."""
    if status_code in (401, 403, 404):
        return status_code
    return 502


def handle_backend_errors(f):
    """Turn an uncaught BackendError into a JSON error response."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except BackendError as e:
            current_app.logger.warning("Backend call failed in %s: %s", request.path, e)
            return jsonify({"error": str(e)}), backend_error_status(e.status_code)

    return decorated_function
