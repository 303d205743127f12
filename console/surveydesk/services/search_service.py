# Overview: Client-side filtering and match highlighting over already-fetched lists.

from __future__ import annotations

import re
from typing import Iterable

from ..models import OWING_STATUSES, Customer, CustomerBalance, Payment, Sale, Tool


def _contains(value: str | None, needle: str) -> bool:
    return needle in (value or "").lower()


def search_customers(customers: Iterable[Customer], query: str) -> list[Customer]:
    """Name, email and state match case-insensitively; phone matches as typed."""
    if not query or not query.strip():
        return []
    needle = query.lower()
    return [
        c for c in customers
        if _contains(c.name, needle)
        or query in (c.phone or "")
        or _contains(c.email, needle)
        or _contains(c.state, needle)
    ]


def filter_tools(tools: Iterable[Tool], category: str | None = None, query: str | None = None) -> list[Tool]:
    wanted = (category or "").lower()
    needle = (query or "").strip().lower()
    matched = []
    for tool in tools:
        if wanted and wanted != "all" and (tool.category or "").lower() != wanted:
            continue
        if needle and not (
            _contains(tool.name, needle)
            or _contains(tool.code, needle)
            or _contains(tool.description, needle)
        ):
            continue
        matched.append(tool)
    return matched


def filter_sales(sales: Iterable[Sale], query: str | None = None, status: str | None = None) -> list[Sale]:
    needle = (query or "").strip().lower()
    matched = []
    for sale in sales:
        if status and status != "all" and (sale.payment_status or "") != status:
            continue
        if needle and not (
            _contains(sale.name, needle)
            or _contains(sale.state, needle)
            or _contains(sale.invoice_number, needle)
            or any(_contains(item.equipment, needle) for item in sale.items)
            or any(needle in s.lower() for item in sale.items for s in item.serial_set)
        ):
            continue
        matched.append(sale)
    return matched


def filter_payments(payments: Iterable[Payment], query: str | None = None, status: str | None = None) -> list[Payment]:
    """Status matches case-insensitively ("completed" finds "Completed")."""
    needle = (query or "").strip().lower()
    wanted = (status or "").lower()
    matched = []
    for payment in payments:
        if wanted and wanted != "all" and payment.status.lower() != wanted:
            continue
        if needle and not (
            _contains(payment.customer, needle)
            or _contains(payment.reference, needle)
            or _contains(payment.id, needle)
            or _contains(payment.sale_id, needle)
        ):
            continue
        matched.append(payment)
    return matched


def filter_balances(
    balances: Iterable[CustomerBalance], status: str | None = None, query: str | None = None
) -> list[CustomerBalance]:
    """Unknown statuses (including "all") do not filter."""
    needle = (query or "").strip().lower()
    matched = []
    for balance in balances:
        if status in OWING_STATUSES and balance.status != status:
            continue
        if needle and not (
            _contains(balance.name, needle)
            or _contains(balance.email, needle)
            or needle in (balance.phone or "")
        ):
            continue
        matched.append(balance)
    return matched


def highlight(text: str | None, query: str | None, start: str = "<mark>", end: str = "</mark>") -> str:
    """Wrap every case-insensitive occurrence of query in markers, keeping the original casing."""
    text = text or ""
    if not query or not query.strip():
        return text
    pattern = re.compile(re.escape(query.strip()), re.IGNORECASE)
    return pattern.sub(lambda m: f"{start}{m.group(0)}{end}", text)
