# Overview: Assigns one physical unit from an equipment group and reconciles its serials into a sale-ready result.

"""
Equipment-set assignment.

WHY: The assign-random response and the full tool record describe the same
unit in different shapes. A sale line must only ever reference a complete
physical bundle, so the two are merged and validated here before anything
reaches the sale draft.

Known gap: there is no compensating call when the assign succeeds and the
follow-up fetch fails. The unit stays marked as assigned on the backend until
someone releases it there.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from ..models import (
    COMBO_SET,
    RECEIVER_CATEGORY,
    AssignmentResult,
    CurrentItem,
    SaleItem,
    SerialBreakdown,
)
from .api_client import BackendClient, BackendError
from .serial_service import extract_tool_serials


logger = logging.getLogger(__name__)

NO_STOCK = "no_stock"
INCOMPLETE_SET = "incomplete_set"
TRANSPORT = "transport"

NO_STOCK_MESSAGE = "No complete equipment sets available in stock"
TRANSPORT_MESSAGE = "Failed to assign equipment set from inventory"


class AssignmentError(Exception):
    """Raised when a unit cannot be turned into a sale line."""
    def __init__(self, message: str, kind: str = TRANSPORT, details: dict | None = None):
        super().__init__(message)
        self.kind = kind
        self.details = details or {}


def breakdown_from_response(response: dict) -> SerialBreakdown:
    """Read the serial fields carried by an assign-random response as-is."""
    return SerialBreakdown(
        serial_set=list(response.get("serial_set") or []),
        datalogger_serial=response.get("datalogger_serial") or None,
        external_radio_serial=response.get("external_radio_serial") or None,
    )


def merge_serials(primary: SerialBreakdown | None, fallback: SerialBreakdown | None) -> SerialBreakdown:
    """
    Combine the normalised full record (primary) with the raw assign response (fallback).

    The primary wins. The fallback is consulted only when the primary found no
    receivers at all; its receivers then replace the empty set and its
    datalogger/radio fill whatever the primary left blank.
    """
    primary = primary or SerialBreakdown()
    if primary.serial_set or not fallback or not fallback.serial_set:
        return SerialBreakdown(
            serial_set=list(primary.serial_set),
            datalogger_serial=primary.datalogger_serial,
            external_radio_serial=primary.external_radio_serial,
        )

    return SerialBreakdown(
        serial_set=list(fallback.serial_set),
        datalogger_serial=primary.datalogger_serial or fallback.datalogger_serial,
        external_radio_serial=primary.external_radio_serial or fallback.external_radio_serial,
    )


def missing_combo_component(breakdown: SerialBreakdown) -> Optional[str]:
    if not breakdown.external_radio_serial:
        return "External Radio"
    if not breakdown.datalogger_serial:
        return "Datalogger"
    if len(breakdown.serial_set) < 2:
        return "Receiver"
    return None


def validate_assignment(breakdown: SerialBreakdown, equipment_type: Optional[str]) -> None:
    """Reject incomplete combo sets; every other set type is accepted as reconciled."""
    if equipment_type != COMBO_SET:
        return

    missing = missing_combo_component(breakdown)
    if missing:
        logger.error("Assignment rejected, incomplete set: %s", breakdown)
        raise AssignmentError(
            f"Inventory Error: The assigned set is incomplete. Missing: {missing}. "
            "Please check stock or try again.",
            kind=INCOMPLETE_SET,
            details={"missing": missing, "serials": breakdown.to_dict()},
        )


def _equipment_type_for(current_item: CurrentItem) -> Optional[str]:
    # Only receivers come in set types; other categories skip the branching entirely.
    if current_item.selected_category != RECEIVER_CATEGORY:
        return None
    return current_item.selected_equipment_type or None


def assign_equipment_set(client: BackendClient, current_item: CurrentItem) -> AssignmentResult:
    """
    Allocate one unit of the selected group and return its reconciled serials.

    Issues the assign call, then fetches the full record of the assigned unit.
    All failures leave as AssignmentError: kind "no_stock" for a backend 404,
    "incomplete_set" for validation, "transport" for everything else.
    """
    if not current_item.selected_tool:
        raise AssignmentError("No tool selected", kind=TRANSPORT)

    tool_name = current_item.selected_tool.name
    equipment_type = _equipment_type_for(current_item)
    logger.info(
        "Assigning unit: tool=%s category=%s equipment_type=%s",
        tool_name, current_item.selected_category, equipment_type,
    )

    try:
        initial: dict[str, Any] = client.assign_random_tool(
            tool_name, current_item.selected_category, equipment_type,
        )
    except BackendError as exc:
        if exc.status_code == 404:
            backend_text = exc.payload.get("error") if isinstance(exc.payload, dict) else None
            raise AssignmentError(backend_text or NO_STOCK_MESSAGE, kind=NO_STOCK) from exc
        logger.exception("Assign-random failed for %s", tool_name)
        raise AssignmentError(TRANSPORT_MESSAGE, kind=TRANSPORT) from exc

    assigned_tool_id = str(initial.get("assigned_tool_id") or "")
    try:
        tool = client.get_tool(assigned_tool_id)
    except BackendError as exc:
        logger.warning(
            "Unit %s assigned but its record could not be fetched; it stays assigned on the backend",
            assigned_tool_id,
        )
        raise AssignmentError(TRANSPORT_MESSAGE, kind=TRANSPORT) from exc

    breakdown = merge_serials(
        extract_tool_serials(tool, equipment_type),
        breakdown_from_response(initial),
    )
    validate_assignment(breakdown, equipment_type)

    return AssignmentResult(
        assigned_tool_id=assigned_tool_id,
        tool_name=initial.get("tool_name") or tool.name or tool_name,
        serial_set=breakdown.serial_set,
        set_type=equipment_type or initial.get("set_type"),
        cost=initial.get("cost"),
        datalogger_serial=breakdown.datalogger_serial,
        external_radio_serial=breakdown.external_radio_serial,
        invoice_number=initial.get("invoice_number"),
        import_invoice=tool.invoice_number,
    )


def sale_item_from_assignment(assignment: AssignmentResult, current_item: CurrentItem) -> SaleItem:
    return SaleItem(
        tool_id=assignment.assigned_tool_id,
        equipment=assignment.tool_name,
        cost=current_item.cost,
        category=current_item.selected_category,
        serial_set=list(assignment.serial_set),
        datalogger_serial=assignment.datalogger_serial,
        external_radio_serial=assignment.external_radio_serial,
        assigned_tool_id=assignment.assigned_tool_id,
        invoice_number=assignment.invoice_number,
        import_invoice=assignment.import_invoice,
    )


class AssignmentEpoch:
    """
    Generation counters for sale drafts, keyed by draft id.

    Every write to a draft bumps its counter. An assignment records the value
    it started from and is applied only if nothing else wrote the draft in
    the meantime; otherwise its result is discarded. One instance is shared
    by all requests of an app, so reads and bumps are lock-guarded.
    """

    def __init__(self):
        self._values: dict[str, int] = {}
        self._lock = threading.Lock()

    def current(self, key: str) -> int:
        with self._lock:
            return self._values.get(key, 0)

    def invalidate(self, key: str) -> int:
        with self._lock:
            value = self._values.get(key, 0) + 1
            self._values[key] = value
            return value

    def is_current(self, key: str, token: int) -> bool:
        with self._lock:
            return self._values.get(key, 0) == token
