# Overview: Table rows, summaries and PDF/CSV exports built from already-loaded sales, tools, payments and balances.

from __future__ import annotations

import csv
import io
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from ..models import CustomerBalance, Payment, Sale, Tool
from ..time_utils import display_date, today_iso
from ..validation import ValidationError, parse_amount
from .serial_service import format_serial_summary


class ReportError(Exception):
    """Raised when report generation fails."""
    pass


SALES_COLUMNS = [
    "Client", "Phone", "State", "Items", "Serial Numbers",
    "Price", "Date Sold", "Sales Invoice", "Import Invoice",
    "Payment Plan", "Initial Deposit", "Payment Months", "Expiry", "Status",
]
# mm, landscape A4 minus margins
SALES_WIDTHS = [24, 20, 16, 28, 44, 18, 18, 18, 18, 16, 18, 14, 14, 11]

TOOLS_COLUMNS = [
    "Name", "Code", "Category", "Serials", "Cost", "Stock", "Supplier", "Invoice", "Added",
]
TOOLS_WIDTHS = [40, 22, 24, 74, 22, 14, 30, 28, 23]

PAYMENTS_COLUMNS = ["Payment ID", "Sale", "Customer", "Amount", "Date", "Reference", "Method", "Status"]
PAYMENTS_WIDTHS = [28, 22, 50, 32, 26, 54, 35, 30]

OWING_COLUMNS = [
    "Customer", "Total Selling", "Amount Paid", "Amount Left",
    "Progress", "Last Paid", "Next Installment", "Status",
]
OWING_WIDTHS = [55, 36, 36, 36, 20, 28, 34, 32]

OWING_STATUS_LABELS = {
    "fully-paid": "Fully Paid",
    "on-track": "On Track",
    "due-soon": "Due Soon",
    "overdue": "Overdue",
}

EXPORT_FORMATS = ("pdf", "csv")


def _or_dash(value) -> str:
    if value in (None, ""):
        return "-"
    return str(value)


def _money(value, currency: str) -> str:
    return f"{currency}{value}"


def sales_table_rows(sales: Iterable[Sale], currency: str = "₦") -> list[list[str]]:
    rows = []
    for s in sales:
        rows.append([
            s.name,
            s.phone,
            s.state,
            ", ".join(item.equipment for item in s.items),
            "; ".join(format_serial_summary(item) for item in s.items),
            _money(s.total_cost, currency),
            s.date_sold,
            _or_dash(s.invoice_number),
            _or_dash(s.import_invoice),
            _or_dash(s.payment_plan),
            _money(s.initial_deposit, currency) if s.initial_deposit else "-",
            _or_dash(s.payment_months),
            _or_dash(s.expiry_date),
            _or_dash(s.payment_status),
        ])
    return rows


def _tool_serials(tool: Tool) -> str:
    serials = tool.serials
    if isinstance(serials, dict):
        values = [str(v) for v in serials.values() if v]
    else:
        values = [str(v) for v in (serials or []) if v]
    return ", ".join(values) if values else "-"


def tools_table_rows(tools: Iterable[Tool], currency: str = "$") -> list[list[str]]:
    return [
        [
            t.name,
            t.code,
            _or_dash(t.category),
            _tool_serials(t),
            _money(t.cost if t.cost is not None else 0, currency),
            str(t.stock or 0),
            _or_dash(t.supplier or t.supplier_name),
            _or_dash(t.invoice_number),
            display_date(t.date_added),
        ]
        for t in tools
    ]


def inventory_summary(tools: Sequence[Tool], low_stock_threshold: int = 5) -> dict:
    return {
        "total_tools": len(tools),
        "total_stock": sum(t.stock or 0 for t in tools),
        "low_stock": sum(1 for t in tools if (t.stock or 0) <= low_stock_threshold),
    }


def _sale_total(sale: Sale) -> Decimal:
    try:
        return parse_amount(sale.total_cost, "total_cost", allow_blank=True) or Decimal(0)
    except ValidationError:
        # unparseable totals count as zero
        return Decimal(0)


def sales_summary(sales: Sequence[Sale]) -> dict:
    statuses = Counter((s.payment_status or "pending") for s in sales)
    revenue = sum((_sale_total(s) for s in sales), Decimal(0))
    return {
        "sales_count": len(sales),
        "items_sold": sum(len(s.items) for s in sales),
        "revenue": str(revenue),
        "by_status": dict(sorted(statuses.items())),
    }


def _decimal(value) -> Decimal | None:
    try:
        return parse_amount(value, "amount", allow_blank=True)
    except ValidationError:
        return None


def _money_2dp(value, currency: str) -> str:
    """₦1,500,000.00 style; values that are not plain amounts are shown as sent."""
    amount = _decimal(value)
    if amount is None:
        return _or_dash(value)
    return f"{currency}{amount:,.2f}"


def payments_table_rows(payments: Iterable[Payment], currency: str = "₦") -> list[list[str]]:
    return [
        [
            p.id,
            _or_dash(p.sale_id),
            p.customer,
            _money_2dp(p.amount, currency),
            display_date(p.date),
            _or_dash(p.reference),
            _or_dash(p.method),
            _or_dash(p.status),
        ]
        for p in payments
    ]


def payments_summary(payments: Sequence[Payment]) -> dict:
    """Received counts completed payments only."""
    statuses = Counter((p.status or "Pending") for p in payments)
    received = sum(
        (_decimal(p.amount) or Decimal(0) for p in payments if p.status.lower() == "completed"),
        Decimal(0),
    )
    return {
        "payments_count": len(payments),
        "total_received": str(received),
        "by_status": dict(sorted(statuses.items())),
    }


def owing_table_rows(balances: Iterable[CustomerBalance], currency: str = "₦") -> list[list[str]]:
    return [
        [
            b.name,
            _money_2dp(b.total_selling_price, currency),
            _money_2dp(b.amount_paid, currency),
            _money_2dp(b.amount_left, currency),
            f"{b.progress}%",
            display_date(b.date_last_paid),
            display_date(b.date_next_installment),
            OWING_STATUS_LABELS.get(b.status, _or_dash(b.status)),
        ]
        for b in balances
    ]


def export_filename(prefix: str, ext: str, today: date | None = None) -> str:
    return f"{prefix}-{today_iso(today)}.{ext}"


# CSV

def rows_to_csv(columns: Sequence[str], rows: Iterable[Sequence[str]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(columns)
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def export_sales_csv(sales: Iterable[Sale], currency: str = "₦") -> bytes:
    return rows_to_csv(SALES_COLUMNS, sales_table_rows(sales, currency))


def export_tools_csv(tools: Iterable[Tool], currency: str = "$") -> bytes:
    return rows_to_csv(TOOLS_COLUMNS, tools_table_rows(tools, currency))


# PDF

def _latin1(text: str) -> str:
    # Core PDF fonts are latin-1 only
    return text.replace("₦", "NGN ").encode("latin-1", "replace").decode("latin-1")


class TablePDF(FPDF):
    """Landscape report with the title and column header repeated on every page."""

    def __init__(self, title: str, columns: Sequence[str], widths: Sequence[float]):
        super().__init__(orientation="L", unit="mm", format="A4")
        if len(columns) != len(widths):
            raise ReportError("columns and widths must have the same length")
        self.report_title = title
        self.table_columns = list(columns)
        self.column_widths = list(widths)
        self.set_margins(10, 10, 10)
        self.set_auto_page_break(auto=True, margin=15)

    def header(self):
        self.set_font("Helvetica", "B", 14)
        self.cell(0, 10, _latin1(self.report_title), new_x=XPos.LMARGIN, new_y=YPos.NEXT, align="L")
        self.set_font("Helvetica", "B", 7)
        self.set_fill_color(22, 54, 92)
        self.set_text_color(255, 255, 255)
        for label, width in zip(self.table_columns, self.column_widths):
            self.cell(width, 7, _latin1(label), border=1, align="C", fill=True)
        self.ln(7)
        self.set_text_color(0, 0, 0)
        self.set_font("Helvetica", "", 7)

    def footer(self):
        self.set_y(-12)
        self.set_font("Helvetica", "I", 8)
        self.cell(0, 10, f"Page {self.page_no()}", align="C")

    def fit(self, text: str, width: float) -> str:
        text = _latin1(text)
        if self.get_string_width(text) <= width - 2:
            return text
        while text and self.get_string_width(text + "...") > width - 2:
            text = text[:-1]
        return text + "..."

    def add_rows(self, rows: Iterable[Sequence[str]]) -> None:
        for row in rows:
            for value, width in zip(row, self.column_widths):
                self.cell(width, 6, self.fit(str(value), width), border=1)
            self.ln(6)


def rows_to_pdf(title: str, columns: Sequence[str], widths: Sequence[float], rows: Iterable[Sequence[str]]) -> bytes:
    pdf = TablePDF(title, columns, widths)
    pdf.add_page()
    pdf.add_rows(rows)
    return bytes(pdf.output())


def export_sales_pdf(sales: Iterable[Sale], currency: str = "₦", title: str = "My Sales Records") -> bytes:
    return rows_to_pdf(title, SALES_COLUMNS, SALES_WIDTHS, sales_table_rows(sales, currency))


def export_tools_pdf(tools: Iterable[Tool], currency: str = "$", title: str = "Tools Inventory") -> bytes:
    return rows_to_pdf(title, TOOLS_COLUMNS, TOOLS_WIDTHS, tools_table_rows(tools, currency))


def export_sales(sales: Iterable[Sale], fmt: str, currency: str = "₦") -> bytes:
    if fmt == "pdf":
        return export_sales_pdf(sales, currency)
    if fmt == "csv":
        return export_sales_csv(sales, currency)
    raise ReportError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")


def export_tools(tools: Iterable[Tool], fmt: str, currency: str = "$") -> bytes:
    if fmt == "pdf":
        return export_tools_pdf(tools, currency)
    if fmt == "csv":
        return export_tools_csv(tools, currency)
    raise ReportError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")


def export_payments(payments: Iterable[Payment], fmt: str, currency: str = "₦") -> bytes:
    rows = payments_table_rows(payments, currency)
    if fmt == "pdf":
        return rows_to_pdf("Payment History", PAYMENTS_COLUMNS, PAYMENTS_WIDTHS, rows)
    if fmt == "csv":
        return rows_to_csv(PAYMENTS_COLUMNS, rows)
    raise ReportError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")


def export_balances(balances: Iterable[CustomerBalance], fmt: str, currency: str = "₦") -> bytes:
    rows = owing_table_rows(balances, currency)
    if fmt == "pdf":
        return rows_to_pdf("Customer Payment Status", OWING_COLUMNS, OWING_WIDTHS, rows)
    if fmt == "csv":
        return rows_to_csv(OWING_COLUMNS, rows)
    raise ReportError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")
