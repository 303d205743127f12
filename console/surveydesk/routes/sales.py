# Overview: Flask routes for sales and the open sale draft; parses input and returns JSON responses.

# console/surveydesk/routes/sales.py
"""Sales and sale-draft routes. The draft lives in the session until submit."""

import io

from flask import Blueprint, current_app, jsonify, request, send_file

from ..decorators import handle_backend_errors, require_token
from ..extensions import backend, drafts
from ..services import reporting_service, sales_service, search_service
from ..services.assignment_service import INCOMPLETE_SET, NO_STOCK, AssignmentError
from ..services.reporting_service import ReportError
from ..services.sales_service import SaleDraft, SaleError
from ..validation import ValidationError, parse_amount, require_fields, require_object


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

EXPORT_MIMETYPES = {"pdf": "application/pdf", "csv": "text/csv"}


def _seen_epoch(data: dict):
    """The draft epoch the caller last saw, or None when it did not send one."""
    value = data.get("epoch")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError("epoch must be a non-negative integer")
    return value


def _assignment_status(error: AssignmentError) -> int:
    if error.kind == NO_STOCK:
        return 404
    if error.kind == INCOMPLETE_SET:
        return 409
    return 502


def _grouped_tools_for(draft: SaleDraft):
    item = draft.current_item
    if not item.selected_category:
        return []
    return backend.client().get_grouped_tools(
        item.selected_category, item.selected_equipment_type or None
    )


@sales_bp.get("/")
@require_token
@handle_backend_errors
def list_sales_route():
    """
    List sales, optionally filtered.

    Query: q (customer, state, invoice, equipment, serial), status
    """
    sales = backend.client().get_sales()
    filtered = search_service.filter_sales(
        sales, request.args.get("q"), request.args.get("status")
    )
    return jsonify({
        "sales": [s.to_dict() for s in filtered],
        "summary": reporting_service.sales_summary(filtered),
    }), 200


@sales_bp.get("/export")
@require_token
@handle_backend_errors
def export_sales_route():
    fmt = (request.args.get("format") or "pdf").lower()
    try:
        sales = search_service.filter_sales(
            backend.client().get_sales(), request.args.get("q"), request.args.get("status")
        )
        data = reporting_service.export_sales(sales, fmt, current_app.config["CURRENCY_SYMBOL"])
    except ReportError as e:
        return jsonify({"error": str(e)}), 400

    return send_file(
        io.BytesIO(data),
        mimetype=EXPORT_MIMETYPES[fmt],
        as_attachment=True,
        download_name=reporting_service.export_filename("my_sales_records", fmt),
    )


@sales_bp.patch("/<int:sale_id>/status")
@require_token
@handle_backend_errors
def update_status_route(sale_id: int):
    try:
        data = require_object(request.get_json(silent=True))
        sales_service.update_payment_status(backend.client(), sale_id, data.get("payment_status"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 502
    return jsonify({"id": sale_id, "payment_status": data.get("payment_status")}), 200


@sales_bp.get("/draft")
@require_token
def get_draft_route():
    return jsonify({"draft": drafts.load().to_dict()}), 200


@sales_bp.delete("/draft")
@require_token
def reset_draft_route():
    draft = drafts.load()
    draft.reset()
    drafts.save(draft)
    return jsonify({"draft": draft.to_dict()}), 200


@sales_bp.put("/draft/customer")
@require_token
@handle_backend_errors
def set_customer_route():
    try:
        data = require_fields(request.get_json(silent=True), ["customer_id"])
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    customer_id = data["customer_id"]

    customer = next(
        (c for c in backend.client().get_customers() if str(c.id) == str(customer_id)), None
    )
    if not customer:
        return jsonify({"error": "Customer not found"}), 404

    draft = drafts.load()
    draft.customer = customer
    drafts.save(draft)
    return jsonify({"draft": draft.to_dict()}), 200


@sales_bp.put("/draft/category")
@require_token
@handle_backend_errors
def select_category_route():
    """Start a new line. Receivers answer needs_equipment_type so the picker can ask for the set type."""
    try:
        category = require_fields(request.get_json(silent=True), ["category"])["category"]
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    draft = drafts.load()
    needs_equipment_type = draft.select_category(category)
    grouped = [] if needs_equipment_type else _grouped_tools_for(draft)
    drafts.save(draft)
    return jsonify({
        "draft": draft.to_dict(),
        "needs_equipment_type": needs_equipment_type,
        "grouped_tools": [g.to_dict() for g in grouped],
    }), 200


@sales_bp.put("/draft/equipment-type")
@require_token
@handle_backend_errors
def select_equipment_type_route():
    try:
        equipment_type = require_fields(request.get_json(silent=True), ["equipment_type"])["equipment_type"]
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    draft = drafts.load()
    draft.select_equipment_type(equipment_type)
    grouped = _grouped_tools_for(draft)
    drafts.save(draft)
    return jsonify({"draft": draft.to_dict(), "grouped_tools": [g.to_dict() for g in grouped]}), 200


@sales_bp.put("/draft/tool")
@require_token
@handle_backend_errors
def select_tool_route():
    try:
        name = require_fields(request.get_json(silent=True), ["name"])["name"]
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    draft = drafts.load()
    if not draft.current_item.selected_category:
        return jsonify({"error": "Select a category first"}), 400
    try:
        draft.select_tool(name, _grouped_tools_for(draft))
    except SaleError as e:
        return jsonify({"error": str(e)}), 404
    drafts.save(draft)
    return jsonify({"draft": draft.to_dict()}), 200


@sales_bp.patch("/draft/current-item")
@require_token
def update_current_item_route():
    try:
        data = require_object(request.get_json(silent=True))
        if "cost" in data:
            parse_amount(data["cost"], "cost", allow_blank=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    draft = drafts.load()
    if "cost" in data:
        draft.update_current_item(cost=str(data["cost"] or ""))
    drafts.save(draft)
    return jsonify({"draft": draft.to_dict()}), 200


@sales_bp.patch("/draft/details")
@require_token
def update_details_route():
    try:
        data = require_object(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    draft = drafts.load()
    try:
        draft.update_sale_details(**data)
    except SaleError as e:
        return jsonify({"error": str(e)}), 400
    drafts.save(draft)
    return jsonify({"draft": draft.to_dict()}), 200


@sales_bp.post("/draft/items")
@require_token
def add_item_route():
    """
    Assign a physical unit for the current line and add it to the draft.

    Body (optional): {"epoch": <draft epoch the client last saw>}.

    404: nothing in stock, 409: incomplete combo set or the draft moved on
    (reset, edited) while the unit was being assigned, 502: backend failure.
    The draft is unchanged on every error.
    """
    try:
        seen_epoch = _seen_epoch(require_object(request.get_json(silent=True)))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    draft = drafts.load()
    try:
        item = sales_service.add_assigned_item(backend.client(), draft, seen_epoch=seen_epoch)
    except (SaleError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except AssignmentError as e:
        return jsonify({"error": str(e), "kind": e.kind, "details": e.details}), _assignment_status(e)
    except Exception:
        current_app.logger.exception("Failed to add sale item")
        return jsonify({"error": "Internal server error"}), 500

    if item is None:
        return jsonify({"error": "Assignment superseded by a newer action"}), 409
    drafts.save(draft)
    return jsonify({"item": item.to_dict(), "draft": draft.to_dict()}), 201


@sales_bp.delete("/draft/items/<int:index>")
@require_token
def remove_item_route(index: int):
    draft = drafts.load()
    try:
        draft.remove_item(index)
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    drafts.save(draft)
    return jsonify({"draft": draft.to_dict()}), 200


@sales_bp.post("/draft/submit")
@require_token
def submit_draft_route():
    """Save the draft as a sale. action: "draft" (default) or "send" to also email the invoice."""
    try:
        data = require_object(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    draft = drafts.load()
    try:
        sale = sales_service.submit_sale(
            backend.client(),
            draft,
            action=data.get("action") or sales_service.SAVE_DRAFT,
            currency=current_app.config["CURRENCY_SYMBOL"],
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SaleError as e:
        status = 502 if "backend" in e.details else 400
        return jsonify({"error": str(e), "details": e.details}), status
    except Exception:
        current_app.logger.exception("Failed to submit sale")
        return jsonify({"error": "Internal server error"}), 500

    drafts.save(draft)
    return jsonify({"sale": sale.to_dict()}), 201
