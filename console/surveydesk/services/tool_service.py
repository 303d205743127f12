"""
Tool Service - creating and editing inventory tools

WHY: The inventory form both creates new tools and tops up existing ones.
A tool whose code already exists is not duplicated; its stock grows by the
entered quantity instead.
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import TOOL_CATEGORIES, Tool
from ..time_utils import utc_now_iso
from ..validation import PayloadPolicy, ValidationError, parse_amount, parse_count, validate_payload
from .api_client import BackendClient


logger = logging.getLogger(__name__)

TOOL_POLICY = PayloadPolicy(
    writable_fields=frozenset({
        "name", "code", "cost", "status", "category", "stock", "description",
        "supplier", "invoice_number", "serials", "equipment_type",
    }),
    required_on_create=frozenset({"name", "code", "cost"}),
)


def _clean_serials(value: Any) -> list[str]:
    if not isinstance(value, list):
        raise ValidationError("serials must be a list")
    return [str(s).strip() for s in value if s is not None and str(s).strip()]


def enforce_rules_tool(patch: dict) -> dict:
    """Coerce the typed fields of a validated tool patch in place."""
    if "cost" in patch:
        parse_amount(patch["cost"], "cost")
        patch["cost"] = str(patch["cost"]).replace(",", "")
    if "stock" in patch:
        patch["stock"] = parse_count(patch["stock"], "stock")
    if patch.get("category") and patch["category"] not in TOOL_CATEGORIES:
        raise ValidationError(f"category must be one of: {', '.join(TOOL_CATEGORIES)}")
    if "serials" in patch:
        serials = _clean_serials(patch["serials"])
        if serials:
            patch["serials"] = serials
        else:
            del patch["serials"]
    return patch


def _find_by_code(tools: list[Tool], code: str) -> Tool | None:
    wanted = code.lower()
    return next((t for t in tools if t.code and t.code.lower() == wanted), None)


def save_tool(client: BackendClient, payload) -> tuple[Tool, bool]:
    """
    Create a tool, or add to the stock of the one with the same code.

    Returns (tool, merged); merged is True when an existing tool was topped up.
    """
    patch = enforce_rules_tool(validate_payload(payload=payload, policy=TOOL_POLICY, partial=False))
    stock = patch.setdefault("stock", 0)

    existing = _find_by_code(client.get_tools(), patch["code"])
    if existing:
        update = {"stock": (existing.stock or 0) + stock}
        if patch.get("serials"):
            update["serials"] = patch["serials"]
        tool = client.update_tool(existing.id, update)
        logger.info("Tool %s already exists; stock increased by %s", existing.code, stock)
        return tool, True

    patch.setdefault("date_added", utc_now_iso())
    tool = client.create_tool(patch)
    logger.info("Created tool %s (%s)", tool.id, patch["code"])
    return tool, False


def update_tool(client: BackendClient, tool_id: str, payload) -> Tool:
    patch = enforce_rules_tool(validate_payload(payload=payload, policy=TOOL_POLICY, partial=True))
    tool = client.update_tool(tool_id, patch)
    logger.info("Updated tool %s: %s", tool_id, ", ".join(sorted(patch)))
    return tool
