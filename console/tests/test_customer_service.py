from datetime import date

import pytest

from surveydesk.models import CustomerBalance
from surveydesk.services.customer_service import (
    DUE_SOON,
    FULLY_PAID,
    ON_TRACK,
    OVERDUE,
    activate_customer,
    balance_status,
    classify_balances,
    owing_summary,
    progress_percent,
    register_customer,
)
from surveydesk.validation import ValidationError

from conftest import CUSTOMER


TODAY = date(2026, 3, 10)


def balance(left="1000000", paid="500000", total="1500000", next_due="", **extra) -> CustomerBalance:
    data = {
        "id": extra.pop("id", 1), "name": "Ada Obi", "totalSellingPrice": total,
        "amountPaid": paid, "amountLeft": left, "dateNextInstallment": next_due,
    }
    data.update(extra)
    return CustomerBalance.from_dict(data)


@pytest.mark.customers
class TestRegistration:

    def test_registers_with_trimmed_fields(self, fake_backend, backend_client):
        fake_backend.add("POST", "/customers/add", json_body=CUSTOMER)

        customer = register_customer(backend_client, {
            "name": " Ada Obi ", "email": "ada@example.com", "phone": "08030000000", "state": "Lagos",
        })

        assert customer.id == 7
        assert fake_backend.last_json("POST", "/customers/add")["name"] == "Ada Obi"

    def test_missing_fields_listed(self, fake_backend, backend_client):
        with pytest.raises(ValidationError, match="Missing required fields: phone, state"):
            register_customer(backend_client, {"name": "Ada", "email": "ada@example.com"})

        assert fake_backend.calls("POST", "/customers/add") == []

    def test_blank_name_rejected(self, backend_client):
        with pytest.raises(ValidationError, match="Missing required fields: name"):
            register_customer(backend_client, {
                "name": "", "email": "ada@example.com", "phone": "0803", "state": "Lagos",
            })

    def test_whitespace_name_rejected(self, backend_client):
        with pytest.raises(ValidationError, match="name cannot be blank"):
            register_customer(backend_client, {
                "name": "   ", "email": "ada@example.com", "phone": "0803", "state": "Lagos",
            })

    def test_unknown_field_rejected(self, backend_client):
        with pytest.raises(ValidationError, match="Field not allowed: is_activated"):
            register_customer(backend_client, {
                "name": "Ada", "email": "ada@example.com", "phone": "0803", "state": "Lagos",
                "is_activated": True,
            })

    @pytest.mark.parametrize("email", ["ada", "ada@example", "@example.com", "ada @example.com"])
    def test_bad_email_rejected(self, backend_client, email):
        with pytest.raises(ValidationError, match="valid email"):
            register_customer(backend_client, {
                "name": "Ada", "email": email, "phone": "0803", "state": "Lagos",
            })

    def test_activate_posts_to_backend(self, fake_backend, backend_client):
        fake_backend.add("POST", "/customers/activate/7/", json_body={})

        activate_customer(backend_client, 7)

        assert len(fake_backend.calls("POST", "/customers/activate/7/")) == 1


@pytest.mark.customers
class TestBalances:

    def test_nothing_left_is_fully_paid(self):
        assert balance_status(balance(left="0", paid="1500000"), TODAY) == FULLY_PAID

    def test_past_due_is_overdue(self):
        assert balance_status(balance(next_due="2026-03-09"), TODAY) == OVERDUE

    def test_due_within_a_week_is_due_soon(self):
        assert balance_status(balance(next_due="2026-03-17"), TODAY) == DUE_SOON
        assert balance_status(balance(next_due="2026-03-10T12:00:00Z"), TODAY) == DUE_SOON

    def test_later_or_unknown_due_date_is_on_track(self):
        assert balance_status(balance(next_due="2026-03-18"), TODAY) == ON_TRACK
        assert balance_status(balance(next_due=""), TODAY) == ON_TRACK
        assert balance_status(balance(next_due="soon"), TODAY) == ON_TRACK

    def test_progress_percent(self):
        assert progress_percent(balance()) == 33
        assert progress_percent(balance(total="0", left="0", paid="0")) == 100

    def test_backend_status_wins(self):
        rows = classify_balances([balance(next_due="2026-03-01", status="on-track", progress=40)], TODAY)

        assert rows[0].status == ON_TRACK
        assert rows[0].progress == 40

    def test_summary(self):
        rows = classify_balances([
            balance(id=1, next_due="2026-03-12"),
            balance(id=2, next_due="2026-02-01", left="200000", paid="300000", total="500000"),
            balance(id=3, left="0", paid="100000", total="100000"),
        ], TODAY)

        summary = owing_summary(rows)

        assert [r.status for r in rows] == [DUE_SOON, OVERDUE, FULLY_PAID]
        assert summary == {
            "total_selling_price": "2100000",
            "total_amount_received": "900000",
            "total_amount_left": "1200000",
            "upcoming_receivables": "1000000",
            "overdue_customers": 1,
            "total_customers": 3,
        }
