"""
Sales Service - in-memory sale drafts and their submission

WHY: The sale exists only on the console until one explicit submit. Items are
added one reconciled assignment at a time; nothing is persisted partially.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from ..models import (
    RECEIVER_CATEGORY,
    AssignmentResult,
    CurrentItem,
    Customer,
    GroupedTool,
    Sale,
    SaleDetails,
    SaleItem,
)
from ..time_utils import today_iso
from ..validation import ValidationError, parse_amount, parse_months, validate_payment_status
from .api_client import BackendClient, BackendError
from .assignment_service import (
    AssignmentEpoch,
    assign_equipment_set,
    sale_item_from_assignment,
)


logger = logging.getLogger(__name__)

SAVE_DRAFT = "draft"
SAVE_AND_SEND = "send"
NO_INSTALLMENT = "No"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def format_amount(amount: Decimal) -> str:
    """Plain string for the backend: no exponent, no trailing zeros on whole amounts."""
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal(1)))
    return f"{amount:.2f}"


def _item_cost(item: SaleItem) -> Decimal:
    return parse_amount(item.cost, "cost", allow_blank=True) or Decimal(0)


class SaleDraft:
    """The open sale form: picked items, the line being picked, payment plan and customer."""

    def __init__(
        self,
        items: Optional[list[SaleItem]] = None,
        current_item: Optional[CurrentItem] = None,
        sale_details: Optional[SaleDetails] = None,
        customer: Optional[Customer] = None,
        draft_id: Optional[str] = None,
        epochs: Optional[AssignmentEpoch] = None,
    ):
        self.items: list[SaleItem] = items or []
        self.current_item = current_item or CurrentItem()
        self.sale_details = sale_details or SaleDetails()
        self.customer = customer
        self.draft_id = draft_id or uuid.uuid4().hex
        self.epochs = epochs or AssignmentEpoch()

    @property
    def epoch(self) -> int:
        return self.epochs.current(self.draft_id)

    def touch(self) -> int:
        """Mark the draft as written; assignments started before this are superseded."""
        return self.epochs.invalidate(self.draft_id)

    @property
    def total_cost(self) -> Decimal:
        return sum((_item_cost(item) for item in self.items), Decimal(0))

    def add_item(self, item: SaleItem) -> None:
        self.items.append(item)

    def remove_item(self, index: int) -> SaleItem:
        if index < 0 or index >= len(self.items):
            raise SaleError("Sale item not found", details={"index": index})
        return self.items.pop(index)

    def update_current_item(self, **updates) -> None:
        for key, value in updates.items():
            if not hasattr(self.current_item, key):
                raise SaleError(f"Unknown item field: {key}")
            setattr(self.current_item, key, value)

    def update_sale_details(self, **updates) -> None:
        for key, value in updates.items():
            if key not in vars(self.sale_details):
                raise SaleError(f"Unknown sale detail: {key}")
            setattr(self.sale_details, key, "" if value is None else str(value))

    def clear_current_item(self) -> None:
        self.current_item = CurrentItem()

    def select_category(self, category: str) -> bool:
        """Start a new line; returns True when the category needs an equipment type picked next."""
        self.current_item = CurrentItem(selected_category=category)
        return category == RECEIVER_CATEGORY

    def select_equipment_type(self, equipment_type: str) -> None:
        self.current_item.selected_equipment_type = equipment_type

    def select_tool(self, tool_name: str, grouped_tools: Iterable[GroupedTool]) -> GroupedTool:
        selected = next((g for g in grouped_tools if g.name == tool_name), None)
        if not selected:
            raise SaleError(f"Equipment not found: {tool_name}")
        self.current_item.selected_tool = selected
        if not self.current_item.cost and selected.cost not in (None, ""):
            self.current_item.cost = str(selected.cost)
        return selected

    def apply_assignment(self, token: int, assignment: AssignmentResult) -> Optional[SaleItem]:
        """Turn a reconciled assignment into a line, unless a newer action superseded it."""
        if not self.epochs.is_current(self.draft_id, token):
            logger.warning(
                "Discarding stale assignment of unit %s; it stays assigned on the backend",
                assignment.assigned_tool_id,
            )
            return None
        item = sale_item_from_assignment(assignment, self.current_item)
        self.add_item(item)
        self.clear_current_item()
        return item

    def reset(self) -> None:
        self.items = []
        self.current_item = CurrentItem()
        self.sale_details = SaleDetails()
        self.customer = None
        self.touch()

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "current_item": self.current_item.to_dict(),
            "sale_details": self.sale_details.to_dict(),
            "customer": self.customer.to_dict() if self.customer else None,
            "draft_id": self.draft_id,
            "epoch": self.epoch,
            "total_cost": format_amount(self.total_cost),
        }

    @classmethod
    def from_dict(cls, data: dict | None, epochs: Optional[AssignmentEpoch] = None) -> "SaleDraft":
        """Rebuild a stored draft. The epoch is not read back; it lives in the shared registry."""
        data = data or {}
        customer = data.get("customer")
        return cls(
            items=[SaleItem.from_dict(i) for i in data.get("items") or []],
            current_item=CurrentItem.from_dict(data.get("current_item")),
            sale_details=SaleDetails.from_dict(data.get("sale_details")),
            customer=Customer.from_dict(customer) if customer else None,
            draft_id=data.get("draft_id"),
            epochs=epochs,
        )


def add_assigned_item(
    client: BackendClient,
    draft: SaleDraft,
    seen_epoch: Optional[int] = None,
) -> Optional[SaleItem]:
    """
    Assign a unit for the current line and append it to the draft.

    seen_epoch is the draft epoch the caller last saw; when it is already
    outdated nothing is assigned. AssignmentError propagates with the draft
    untouched. Returns None when the draft was written by another action,
    before or while the assignment was in flight.
    """
    current = draft.current_item
    if not current.selected_tool or not current.cost:
        raise SaleError("Please select equipment and enter a Selling Price.")
    parse_amount(current.cost, "cost")

    token = draft.epoch if seen_epoch is None else seen_epoch
    if not draft.epochs.is_current(draft.draft_id, token):
        logger.info("Draft %s changed since epoch %s; not assigning", draft.draft_id, token)
        return None
    assignment = assign_equipment_set(client, current)
    return draft.apply_assignment(token, assignment)


def build_sale_payload(draft: SaleDraft, today: Optional[date] = None) -> dict:
    if not draft.customer:
        raise SaleError("Please select a customer first.")
    if not draft.items:
        raise SaleError("Please add at least one item to the sale.")

    details = draft.sale_details
    installment = details.payment_plan != NO_INSTALLMENT
    if installment:
        parse_amount(details.initial_deposit, "initial_deposit", allow_blank=True)
        parse_months(details.payment_months)

    first = draft.items[0]
    return {
        "name": draft.customer.name,
        "phone": draft.customer.phone,
        "state": draft.customer.state,
        "items": [item.to_dict() for item in draft.items],
        "total_cost": format_amount(draft.total_cost),
        "payment_plan": details.payment_plan or "",
        "initial_deposit": (details.initial_deposit or None) if installment else None,
        "payment_months": (details.payment_months or None) if installment else None,
        "expiry_date": details.expiry_date or None,
        "invoice_number": first.invoice_number or "",
        "import_invoice": first.import_invoice or "",
        "date_sold": today_iso(today),
    }


def build_invoice_email(
    name: str,
    items: Iterable[SaleItem],
    total: Decimal,
    invoice_number: Optional[str] = None,
    currency: str = "₦",
) -> tuple[str, str]:
    """Subject and plain-text body of the invoice email."""
    subject = f"Your Invoice {f'- {invoice_number}' if invoice_number else ''}".rstrip()
    lines = "\n".join(
        f"• {item.equipment} - {currency}{_item_cost(item):,}" for item in items
    )
    message = (
        f"Hello {name},\n\n"
        f"Thank you for your purchase! Here's your invoice:\n\n"
        f"{lines}\n\n"
        f"Total: {currency}{total:,}\n\n"
        f"Best regards,\nOTIC Surveys"
    )
    return subject, message


def submit_sale(
    client: BackendClient,
    draft: SaleDraft,
    action: str = SAVE_DRAFT,
    today: Optional[date] = None,
    currency: str = "₦",
) -> Sale:
    """
    Create the sale in one backend call; on "send", email the invoice as well.

    The draft is reset only after the sale was created.
    """
    if action not in (SAVE_DRAFT, SAVE_AND_SEND):
        raise ValidationError("action must be draft or send")

    payload = build_sale_payload(draft, today=today)
    try:
        sale = client.create_sale(payload)
    except BackendError as exc:
        logger.exception("Failed to save sale")
        raise SaleError("Failed to save sale", details={"backend": str(exc)}) from exc

    if action == SAVE_AND_SEND and draft.customer.email:
        subject, message = build_invoice_email(
            draft.customer.name, draft.items, draft.total_cost, sale.invoice_number, currency,
        )
        try:
            client.send_sale_email(draft.customer.email, subject, message)
        except BackendError:
            # sale is already created; email failure is reported in the log only
            logger.exception("Sale %s saved but invoice email failed", sale.id)

    draft.reset()
    return sale


def update_payment_status(client: BackendClient, sale_id: int, status: str) -> None:
    validate_payment_status(status)
    try:
        client.update_sale_status(sale_id, status)
    except BackendError as exc:
        raise SaleError("Failed to update payment status", details={"backend": str(exc)}) from exc


class SalesCache:
    """Sales list as last fetched, patched locally after writes."""

    def __init__(self, sales: Optional[list[Sale]] = None):
        self.sales: list[Sale] = list(sales or [])

    def add_sale(self, sale: Sale) -> None:
        self.sales.insert(0, sale)

    def set_status(self, sale_id: int, status: str) -> bool:
        for sale in self.sales:
            if sale.id == sale_id:
                sale.payment_status = status
                return True
        return False
