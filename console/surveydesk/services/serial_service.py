# Overview: Splits a tool's serials into receiver / datalogger / external-radio roles.

"""
Serial shape normalisation.

The backend reports a tool's ``serials`` either as a flat list of strings or
as a mapping keyed by role (``receiver``, ``receiver1``, ``receiver2``,
``data_logger``, ``external_radio`` ...). Everything downstream works with a
``SerialBreakdown`` instead, and this module is the only place that knows
about the two payload shapes.

Classification of flat lists is a substring heuristic. A receiver serial that
happens to contain "RADIO" is misread as the radio; the fix for that belongs
in the backend contract (explicit role per serial), not in callers.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..models import COMBO_SET, SINGLE_RECEIVER_SETS, SaleItem, SerialBreakdown, Tool


logger = logging.getLogger(__name__)

DATALOGGER_MARKERS = ("DL-", "DATALOGGER")
RADIO_MARKERS = ("ER-", "RADIO", "EXTERNAL")

DATALOGGER_KEYS = ("data_logger", "datalogger", "dl")
RADIO_KEYS = ("external_radio", "radio", "externalRadio", "er")


def is_serial_mapping(serials: Any) -> bool:
    return isinstance(serials, dict)


def _first_marked(serials: list[str], markers: tuple[str, ...]) -> Optional[str]:
    for serial in serials:
        upper = serial.upper()
        if any(marker in upper for marker in markers):
            return serial
    return None


def _first_value(mapping: dict, keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        if mapping.get(key):
            return mapping[key]
    return None


def _from_list(serials: list, expected_equipment_type: Optional[str]) -> SerialBreakdown:
    all_serials = [str(s) for s in serials if s is not None]

    datalogger = _first_marked(all_serials, DATALOGGER_MARKERS)
    radio = _first_marked(all_serials, RADIO_MARKERS)
    candidates = [s for s in all_serials if s != datalogger and s != radio]

    if expected_equipment_type == COMBO_SET:
        serial_set = candidates[:2]
        # Untagged sets: fall back to position (R1, R2, DL, ER)
        if not datalogger and len(all_serials) >= 3:
            datalogger = all_serials[2]
        if not radio and len(all_serials) >= 4:
            radio = all_serials[3]
    elif expected_equipment_type in SINGLE_RECEIVER_SETS:
        serial_set = candidates[:1]
    else:
        serial_set = candidates

    return SerialBreakdown(
        serial_set=serial_set,
        datalogger_serial=datalogger,
        external_radio_serial=radio,
    )


def _from_mapping(serials: dict, expected_equipment_type: Optional[str]) -> SerialBreakdown:
    serial_set: list[str] = []

    if expected_equipment_type == COMBO_SET:
        if serials.get("receiver1"):
            serial_set.append(serials["receiver1"])
        if serials.get("receiver2"):
            serial_set.append(serials["receiver2"])
        if not serial_set and serials.get("receiver"):
            serial_set.extend(part.strip() for part in str(serials["receiver"]).split(","))
    else:
        if serials.get("receiver"):
            serial_set.append(serials["receiver"])
        if serials.get("receiver1"):
            serial_set.append(serials["receiver1"])

    return SerialBreakdown(
        serial_set=serial_set,
        datalogger_serial=_first_value(serials, DATALOGGER_KEYS),
        external_radio_serial=_first_value(serials, RADIO_KEYS),
    )


def extract_serials(serials: Any, expected_equipment_type: Optional[str] = None) -> SerialBreakdown:
    """
    Normalise a ``serials`` payload for the given set type.

    Never raises on missing or oddly shaped data: anything that is neither a
    list nor a mapping yields an empty breakdown.
    """
    logger.debug("Extracting serials %r (expected %r)", serials, expected_equipment_type)

    if isinstance(serials, (list, tuple)):
        breakdown = _from_list(list(serials), expected_equipment_type)
    elif is_serial_mapping(serials):
        breakdown = _from_mapping(serials, expected_equipment_type)
    else:
        breakdown = SerialBreakdown()

    logger.debug("Extracted %s", breakdown)
    return breakdown


def extract_tool_serials(tool: Tool, expected_equipment_type: Optional[str] = None) -> SerialBreakdown:
    return extract_serials(tool.serials, expected_equipment_type)


def get_serial_value(serials: Any, key: str) -> str:
    """Single role lookup for display; lists only know receiver1/receiver2 by position."""
    if not serials:
        return ""
    if is_serial_mapping(serials):
        return serials.get(key) or ""
    if isinstance(serials, (list, tuple)):
        if key == "receiver1":
            return serials[0] if len(serials) > 0 else ""
        if key == "receiver2":
            return serials[1] if len(serials) > 1 else ""
    return ""


def format_serial_summary(item: SaleItem) -> str:
    if not item.serial_set:
        return "No serials"
    summary = f"Receiver: {', '.join(item.serial_set)}"
    if item.datalogger_serial:
        summary += f", Datalogger: {item.datalogger_serial}"
    if item.external_radio_serial:
        summary += f", External Radio: {item.external_radio_serial}"
    return summary
