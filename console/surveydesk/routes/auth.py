# Overview: Stores the backend bearer token in the console session.

from flask import Blueprint, jsonify, request, session

from ..decorators import SESSION_TOKEN_KEY
from ..validation import ValidationError, require_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/session")


@auth_bp.post("/token")
def set_token_route():
    """Keep the token issued by the backend login for later requests."""
    try:
        data = require_object(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    token = data.get("token")
    if not token or not isinstance(token, str):
        return jsonify({"error": "token required"}), 400
    session[SESSION_TOKEN_KEY] = token
    return jsonify({"authenticated": True}), 200


@auth_bp.delete("/token")
def clear_token_route():
    session.pop(SESSION_TOKEN_KEY, None)
    return jsonify({"authenticated": False}), 200
