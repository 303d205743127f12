# Overview: Input coercion for console forms (prices, payment plans, statuses).

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from .models import PAYMENT_STATUSES


# Maximum selling price accepted from a form: 9,999,999,999.99
MAX_PRICE = Decimal("9999999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


def require_object(payload: Any) -> dict:
    """JSON request bodies must be objects; a missing body counts as empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def require_fields(data: Any, names: Iterable[str]) -> dict:
    data = require_object(data)
    missing = [n for n in names if data.get(n) in (None, "")]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")
    return data


@dataclass(frozen=True)
class PayloadPolicy:
    """
    What a client may send for one backend resource.

    - writable_fields: keys forwarded to the backend, anything else is rejected
    - required_on_create: keys that must be present and non-blank on create
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


def validate_payload(*, payload: Any, policy: PayloadPolicy, partial: bool) -> dict:
    """
    Check a JSON body against a policy and return a cleaned copy.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    Strings are stripped; required fields cannot be blank on either path.
    """
    payload = require_object(payload)

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for key in payload:
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")

    patch = {}
    for key, raw in payload.items():
        value = raw.strip() if isinstance(raw, str) else raw
        if key in policy.required_on_create and value in (None, ""):
            raise ValidationError(f"{key} cannot be blank")
        patch[key] = value

    if partial and not patch:
        raise ValidationError("No fields to update")
    return patch


def parse_amount(value: Any, field_name: str = "cost", *, allow_blank: bool = False) -> Decimal | None:
    """
    Coerce a money value typed into a form.

    Accepts ints and plain decimal strings; thousands separators are tolerated
    ("1,500,000"). Floats are rejected so values keep their exact decimal form.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if allow_blank:
            return None
        raise ValidationError(f"{field_name} required")

    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field_name} must be a decimal string or integer")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, str):
        stripped = value.strip().replace(",", "")
        # Reject scientific notation (e.g., "1e6")
        if "e" in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain number")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be a number")
    else:
        raise ValidationError(f"{field_name} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    if amount > MAX_PRICE:
        raise ValidationError(f"{field_name} exceeds maximum of {MAX_PRICE}")
    return amount


def parse_months(value: Any) -> int | None:
    """Installment duration; blank means no installment plan."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError("payment_months must be a whole number")
    try:
        months = int(str(value).strip())
    except ValueError:
        raise ValidationError("payment_months must be a whole number")
    if months <= 0:
        raise ValidationError("payment_months must be positive")
    return months


def parse_count(value: Any, field_name: str = "stock") -> int:
    """Whole, non-negative quantity. Floats and "12.5" are rejected rather than truncated."""
    if isinstance(value, int) and not isinstance(value, bool):
        count = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
        try:
            count = int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer")
    else:
        raise ValidationError(f"{field_name} must be an integer")

    if count < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return count


def validate_email(value: Any, field_name: str = "email") -> str:
    text = str(value or "").strip()
    local, _, domain = text.partition("@")
    if not local or "." not in domain or " " in text:
        raise ValidationError(f"{field_name} must be a valid email address")
    return text


def validate_payment_status(status: Any) -> str:
    if not isinstance(status, str) or status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
    return status
