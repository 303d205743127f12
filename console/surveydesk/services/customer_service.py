"""
Customer Service - registration, activation and installment balances

WHY: Customers are created and activated by the backend; the console only
checks the form before sending it and works out where each installment
customer stands from the balances the backend reports.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from ..models import Customer, CustomerBalance
from ..time_utils import parse_iso_datetime
from ..validation import PayloadPolicy, ValidationError, parse_amount, validate_email, validate_payload
from .api_client import BackendClient


logger = logging.getLogger(__name__)

CUSTOMER_POLICY = PayloadPolicy(
    writable_fields=frozenset({"name", "email", "phone", "state"}),
    required_on_create=frozenset({"name", "email", "phone", "state"}),
)

ON_TRACK = "on-track"
DUE_SOON = "due-soon"
OVERDUE = "overdue"
FULLY_PAID = "fully-paid"

DUE_SOON_DAYS = 7


def register_customer(client: BackendClient, payload) -> Customer:
    data = validate_payload(payload=payload, policy=CUSTOMER_POLICY, partial=False)
    data["email"] = validate_email(data["email"])
    customer = client.register_customer(data["name"], data["email"], data["phone"], data["state"])
    logger.info("Registered customer %s (%s)", customer.id, data["email"])
    return customer


def activate_customer(client: BackendClient, customer_id: int) -> None:
    client.activate_customer(customer_id)
    logger.info("Activated customer %s", customer_id)


def _amount(value: str) -> Decimal:
    try:
        return parse_amount(value, "amount", allow_blank=True) or Decimal(0)
    except ValidationError:
        return Decimal(0)


def _due_date(balance: CustomerBalance) -> Optional[date]:
    try:
        dt = parse_iso_datetime(balance.date_next_installment)
    except ValueError:
        return None
    return dt.date() if dt else None


def balance_status(balance: CustomerBalance, today: Optional[date] = None, due_soon_days: int = DUE_SOON_DAYS) -> str:
    """
    fully-paid once nothing is left, overdue past the next installment date,
    due-soon within due_soon_days of it, on-track otherwise.
    """
    if _amount(balance.amount_left) <= 0:
        return FULLY_PAID
    due = _due_date(balance)
    if due is None:
        return ON_TRACK
    today = today or date.today()
    if due < today:
        return OVERDUE
    if due <= today + timedelta(days=due_soon_days):
        return DUE_SOON
    return ON_TRACK


def progress_percent(balance: CustomerBalance) -> int:
    total = _amount(balance.total_selling_price)
    if total <= 0:
        return 100 if _amount(balance.amount_left) <= 0 else 0
    percent = int(_amount(balance.amount_paid) * 100 / total)
    return max(0, min(100, percent))


def classify_balances(
    balances: Iterable[CustomerBalance],
    today: Optional[date] = None,
    due_soon_days: int = DUE_SOON_DAYS,
) -> list[CustomerBalance]:
    """Fill in status and progress where the backend left them out. Backend values win."""
    result = []
    for balance in balances:
        if not balance.status:
            balance.status = balance_status(balance, today, due_soon_days)
        if not balance.progress:
            balance.progress = progress_percent(balance)
        result.append(balance)
    return result


def owing_summary(balances: Iterable[CustomerBalance]) -> dict:
    """Totals for the owing dashboard; upcoming is what due-soon customers still owe."""
    balances = list(balances)
    return {
        "total_selling_price": str(sum((_amount(b.total_selling_price) for b in balances), Decimal(0))),
        "total_amount_received": str(sum((_amount(b.amount_paid) for b in balances), Decimal(0))),
        "total_amount_left": str(sum((_amount(b.amount_left) for b in balances), Decimal(0))),
        "upcoming_receivables": str(
            sum((_amount(b.amount_left) for b in balances if b.status == DUE_SOON), Decimal(0))
        ),
        "overdue_customers": sum(1 for b in balances if b.status == OVERDUE),
        "total_customers": len(balances),
    }
