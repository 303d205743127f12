# Overview: Flask routes for tools, equipment groups and serial lookups, plus adding and editing tools.

import io

from flask import Blueprint, current_app, jsonify, request, send_file

from ..decorators import handle_backend_errors, require_token
from ..extensions import backend
from ..services import reporting_service, search_service, tool_service
from ..services.reporting_service import ReportError
from ..services.serial_service import extract_tool_serials
from ..validation import ValidationError


tools_bp = Blueprint("tools", __name__, url_prefix="/api/tools")

EXPORT_MIMETYPES = {"pdf": "application/pdf", "csv": "text/csv"}


@tools_bp.get("/")
@require_token
@handle_backend_errors
def list_tools_route():
    """Query: category ("all" or blank for any), q (name, code, description)."""
    tools = backend.client().get_tools()
    filtered = search_service.filter_tools(tools, request.args.get("category"), request.args.get("q"))
    return jsonify({
        "tools": [t.to_dict() for t in filtered],
        "summary": reporting_service.inventory_summary(
            tools, current_app.config["LOW_STOCK_THRESHOLD"]
        ),
    }), 200


@tools_bp.get("/grouped")
@require_token
@handle_backend_errors
def grouped_tools_route():
    category = request.args.get("category")
    if not category:
        return jsonify({"error": "category required"}), 400
    grouped = backend.client().get_grouped_tools(category, request.args.get("equipment_type"))
    return jsonify({"grouped_tools": [g.to_dict() for g in grouped]}), 200


@tools_bp.get("/export")
@require_token
@handle_backend_errors
def export_tools_route():
    fmt = (request.args.get("format") or "pdf").lower()
    tools = search_service.filter_tools(
        backend.client().get_tools(), request.args.get("category"), request.args.get("q")
    )
    try:
        data = reporting_service.export_tools(tools, fmt)
    except ReportError as e:
        return jsonify({"error": str(e)}), 400

    return send_file(
        io.BytesIO(data),
        mimetype=EXPORT_MIMETYPES[fmt],
        as_attachment=True,
        download_name=reporting_service.export_filename("tools-inventory", fmt),
    )


@tools_bp.get("/<tool_id>/serials")
@require_token
@handle_backend_errors
def tool_serials_route(tool_id: str):
    """Serials of one tool split by role for the given equipment_type."""
    tool = backend.client().get_tool(tool_id)
    breakdown = extract_tool_serials(tool, request.args.get("equipment_type"))
    return jsonify({"tool_id": tool.id, "serials": breakdown.to_dict()}), 200


@tools_bp.get("/<tool_id>/sold-serials")
@require_token
@handle_backend_errors
def sold_serials_route(tool_id: str):
    sold = backend.client().get_sold_serials(tool_id)
    return jsonify({"tool_id": tool_id, "sold_serials": [s.to_dict() for s in sold]}), 200


@tools_bp.post("/")
@require_token
@handle_backend_errors
def create_tool_route():
    """
    Add a tool. Required: name, code, cost.

    A tool with the same code (case-insensitive) gets its stock increased
    instead; the response says so with merged=true and status 200.
    """
    try:
        tool, merged = tool_service.save_tool(backend.client(), request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"tool": tool.to_dict(), "merged": merged}), 200 if merged else 201


@tools_bp.patch("/<tool_id>")
@require_token
@handle_backend_errors
def update_tool_route(tool_id: str):
    try:
        tool = tool_service.update_tool(backend.client(), tool_id, request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"tool": tool.to_dict()}), 200
