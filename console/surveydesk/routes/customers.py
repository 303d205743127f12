# Overview: Flask routes for customer lookup, registration and activation.

from flask import Blueprint, jsonify, request

from ..decorators import handle_backend_errors, require_token
from ..extensions import backend
from ..services import customer_service
from ..services.search_service import search_customers
from ..validation import ValidationError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/")
@require_token
@handle_backend_errors
def list_customers_route():
    """All customers, or the matches for q when given."""
    customers = backend.client().get_customers()
    query = request.args.get("q")
    if query is not None:
        customers = search_customers(customers, query)
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.post("/")
@require_token
@handle_backend_errors
def register_customer_route():
    """Body: name, email, phone, state (all required)."""
    try:
        customer = customer_service.register_customer(backend.client(), request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"customer": customer.to_dict()}), 201


@customers_bp.post("/<int:customer_id>/activate")
@require_token
@handle_backend_errors
def activate_customer_route(customer_id: int):
    customer_service.activate_customer(backend.client(), customer_id)
    return jsonify({"id": customer_id, "is_activated": True}), 200
