# Overview: Flask routes for payment history and what installment customers still owe.

import io

from flask import Blueprint, current_app, jsonify, request, send_file

from ..decorators import handle_backend_errors, require_token
from ..extensions import backend
from ..services import customer_service, reporting_service, search_service
from ..services.reporting_service import ReportError


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")

EXPORT_MIMETYPES = {"pdf": "application/pdf", "csv": "text/csv"}


def _filtered_payments():
    return search_service.filter_payments(
        backend.client().get_payments(), request.args.get("q"), request.args.get("status")
    )


def _filtered_balances():
    balances = customer_service.classify_balances(
        backend.client().get_customer_balances(),
        due_soon_days=current_app.config["DUE_SOON_DAYS"],
    )
    return balances, search_service.filter_balances(
        balances, request.args.get("status"), request.args.get("q")
    )


def _export(data: bytes, fmt: str, prefix: str):
    return send_file(
        io.BytesIO(data),
        mimetype=EXPORT_MIMETYPES[fmt],
        as_attachment=True,
        download_name=reporting_service.export_filename(prefix, fmt),
    )


@payments_bp.get("/")
@require_token
@handle_backend_errors
def list_payments_route():
    """
    Payment history.

    Query: q (customer, reference, payment or sale id), status
    """
    payments = _filtered_payments()
    return jsonify({
        "payments": [p.to_dict() for p in payments],
        "summary": reporting_service.payments_summary(payments),
    }), 200


@payments_bp.get("/export")
@require_token
@handle_backend_errors
def export_payments_route():
    fmt = (request.args.get("format") or "pdf").lower()
    try:
        data = reporting_service.export_payments(
            _filtered_payments(), fmt, current_app.config["CURRENCY_SYMBOL"]
        )
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    return _export(data, fmt, "payment-history")


@payments_bp.get("/owing")
@require_token
@handle_backend_errors
def owing_route():
    """
    Installment customers with what they paid and still owe.

    Query: status (on-track, due-soon, overdue, fully-paid or all), q.
    The summary always covers every customer, not just the filtered ones.
    """
    balances, filtered = _filtered_balances()
    return jsonify({
        "customers": [b.to_dict() for b in filtered],
        "summary": customer_service.owing_summary(balances),
    }), 200


@payments_bp.get("/owing/export")
@require_token
@handle_backend_errors
def export_owing_route():
    fmt = (request.args.get("format") or "pdf").lower()
    _, filtered = _filtered_balances()
    try:
        data = reporting_service.export_balances(filtered, fmt, current_app.config["CURRENCY_SYMBOL"])
    except ReportError as e:
        return jsonify({"error": str(e)}), 400
    return _export(data, fmt, "customer-payment-status")
