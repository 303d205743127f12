# Overview: Value objects exchanged with the REST backend and kept in the sale draft.

from __future__ import annotations

from dataclasses import dataclass, field, asdict, fields
from typing import Any, Optional, Union


TOOL_CATEGORIES = [
    "Receiver",
    "Accessory",
    "Total Station",
    "Level",
    "Drones",
    "EchoSounder",
    "Laser Scanner",
    "Other",
]

RECEIVER_CATEGORY = "Receiver"

COMBO_SET = "Base & Rover Combo"
BASE_ONLY = "Base Only"
ROVER_ONLY = "Rover Only"
SINGLE_RECEIVER_SETS = (BASE_ONLY, ROVER_ONLY)

RECEIVER_EQUIPMENT_TYPES = [
    BASE_ONLY,
    ROVER_ONLY,
    COMBO_SET,
    "Accessories",
]

PAYMENT_STATUSES = [
    "pending",
    "completed",
    "installment",
    "failed",
    "cancelled",
]

OWING_STATUSES = [
    "on-track",
    "due-soon",
    "overdue",
    "fully-paid",
]

SerialsField = Union[list, dict, None]


def _known_kwargs(cls, data: dict | None) -> dict:
    """Keep only keys the dataclass declares; backend payloads carry extras."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in (data or {}).items() if k in names}


@dataclass
class Tool:
    """One physical or bundled inventory unit as returned by /tools/."""
    id: str
    name: str = ""
    code: str = ""
    category: str = ""
    cost: Any = None
    stock: int = 0
    description: Optional[str] = None
    supplier: Optional[str] = None
    supplier_name: Optional[str] = None
    invoice_number: Optional[str] = None
    expiry_date: Optional[str] = None
    date_added: Optional[str] = None
    serials: SerialsField = None
    available_serials: list = field(default_factory=list)
    sold_serials: list = field(default_factory=list)
    equipment_type: Optional[str] = None
    equipment_type_id: Optional[str] = None
    box_type: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Tool":
        kwargs = _known_kwargs(cls, data)
        kwargs["id"] = str(kwargs.get("id", ""))
        kwargs["stock"] = int(kwargs.get("stock") or 0)
        kwargs["available_serials"] = list(kwargs.get("available_serials") or [])
        kwargs["sold_serials"] = list(kwargs.get("sold_serials") or [])
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class GroupedTool:
    """A named pool of interchangeable units, the unit of assignment."""
    name: str
    category: str = ""
    cost: Any = None
    total_stock: int = 0
    tool_count: int = 0
    description: Optional[str] = None
    supplier_name: Optional[str] = None
    group_id: str = ""
    invoice_number: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "GroupedTool":
        kwargs = _known_kwargs(cls, data)
        kwargs["total_stock"] = int(kwargs.get("total_stock") or 0)
        kwargs["tool_count"] = int(kwargs.get("tool_count") or 0)
        kwargs["group_id"] = str(kwargs.get("group_id") or "")
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SoldSerialInfo:
    serial: str
    sale_id: Optional[int] = None
    customer_name: str = ""
    date_sold: str = ""
    invoice_number: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SoldSerialInfo":
        return cls(**_known_kwargs(cls, data))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Customer:
    id: Optional[int]
    name: str = ""
    phone: str = ""
    email: str = ""
    state: str = ""
    user: Optional[int] = None
    is_activated: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "Customer":
        kwargs = _known_kwargs(cls, data)
        kwargs.setdefault("id", None)
        for key in ("name", "phone", "email", "state"):
            kwargs[key] = kwargs.get(key) or ""
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SerialBreakdown:
    """Serials of one assigned unit split by physical role."""
    serial_set: list[str] = field(default_factory=list)
    datalogger_serial: Optional[str] = None
    external_radio_serial: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SaleItem:
    """One line of a sale, carrying the resolved serial set."""
    tool_id: str
    equipment: str
    cost: str
    category: Optional[str] = None
    serial_set: list[str] = field(default_factory=list)
    datalogger_serial: Optional[str] = None
    external_radio_serial: Optional[str] = None
    assigned_tool_id: Optional[str] = None
    invoice_number: Optional[str] = None
    import_invoice: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SaleItem":
        kwargs = _known_kwargs(cls, data)
        kwargs["tool_id"] = str(kwargs.get("tool_id", ""))
        kwargs["equipment"] = kwargs.get("equipment") or ""
        kwargs["cost"] = str(kwargs.get("cost") or "")
        kwargs["serial_set"] = list(kwargs.get("serial_set") or [])
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Sale:
    id: Optional[int]
    name: str = ""
    phone: str = ""
    state: str = ""
    items: list[SaleItem] = field(default_factory=list)
    total_cost: str = "0"
    date_sold: str = ""
    customer_id: Optional[int] = None
    invoice_number: Optional[str] = None
    import_invoice: Optional[str] = None
    payment_plan: Optional[str] = None
    initial_deposit: Optional[str] = None
    payment_months: Optional[str] = None
    expiry_date: Optional[str] = None
    payment_status: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        kwargs = _known_kwargs(cls, data)
        kwargs.setdefault("id", None)
        kwargs["items"] = [SaleItem.from_dict(i) for i in (kwargs.get("items") or [])]
        kwargs["total_cost"] = str(kwargs.get("total_cost") or "0")
        for key in ("name", "phone", "state", "date_sold"):
            kwargs[key] = kwargs.get(key) or ""
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AssignmentResult:
    """Reconciled outcome of one assign-random call. Never persisted."""
    assigned_tool_id: str
    tool_name: str
    serial_set: list[str]
    set_type: Optional[str] = None
    cost: Any = None
    datalogger_serial: Optional[str] = None
    external_radio_serial: Optional[str] = None
    invoice_number: Optional[str] = None
    import_invoice: Optional[str] = None

    @property
    def serial_count(self) -> int:
        return len(self.serial_set)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["serial_count"] = self.serial_count
        return data


@dataclass
class CurrentItem:
    """The equipment line being picked in the open sale form."""
    selected_category: str = ""
    selected_equipment_type: str = ""
    selected_tool: Optional[GroupedTool] = None
    cost: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> "CurrentItem":
        data = data or {}
        tool = data.get("selected_tool")
        return cls(
            selected_category=data.get("selected_category") or "",
            selected_equipment_type=data.get("selected_equipment_type") or "",
            selected_tool=GroupedTool.from_dict(tool) if tool else None,
            cost=str(data.get("cost") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "selected_category": self.selected_category,
            "selected_equipment_type": self.selected_equipment_type,
            "selected_tool": self.selected_tool.to_dict() if self.selected_tool else None,
            "cost": self.cost,
        }


@dataclass
class SaleDetails:
    payment_plan: str = ""
    initial_deposit: str = ""
    payment_months: str = ""
    expiry_date: str = ""

    @classmethod
    def from_dict(cls, data: dict | None) -> "SaleDetails":
        return cls(**{k: str(v or "") for k, v in _known_kwargs(cls, data).items()})

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Payment:
    """One recorded payment as returned by /payments/."""
    id: str
    sale_id: Optional[str] = None
    customer: str = ""
    amount: str = "0"
    date: str = ""
    reference: str = ""
    method: str = ""
    status: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Payment":
        data = dict(data or {})
        # older payloads key the sale as rentalId
        data.setdefault("sale_id", data.get("rentalId") or data.get("rental_id"))
        kwargs = _known_kwargs(cls, data)
        kwargs["id"] = str(kwargs.get("id", ""))
        if kwargs.get("sale_id") is not None:
            kwargs["sale_id"] = str(kwargs["sale_id"])
        kwargs["amount"] = str(kwargs.get("amount") or "0")
        for key in ("customer", "date", "reference", "method", "status"):
            kwargs[key] = str(kwargs.get(key) or "")
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


# backend (camelCase) -> dataclass field
_BALANCE_KEYS = {
    "totalSellingPrice": "total_selling_price",
    "amountPaid": "amount_paid",
    "amountLeft": "amount_left",
    "dateLastPaid": "date_last_paid",
    "dateNextInstallment": "date_next_installment",
}


@dataclass
class CustomerBalance:
    """What one installment customer has paid and still owes."""
    id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    total_selling_price: str = "0"
    amount_paid: str = "0"
    amount_left: str = "0"
    date_last_paid: str = ""
    date_next_installment: str = ""
    status: str = ""
    progress: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "CustomerBalance":
        data = {_BALANCE_KEYS.get(k, k): v for k, v in (data or {}).items()}
        kwargs = _known_kwargs(cls, data)
        kwargs["id"] = str(kwargs.get("id", ""))
        for key in ("total_selling_price", "amount_paid", "amount_left"):
            kwargs[key] = str(kwargs.get(key) if kwargs.get(key) is not None else "0")
        for key in ("name", "email", "phone", "date_last_paid", "date_next_installment", "status"):
            value = kwargs.get(key)
            kwargs[key] = "" if value in (None, "-") else str(value)
        try:
            kwargs["progress"] = int(float(kwargs.get("progress") or 0))
        except (TypeError, ValueError):
            kwargs["progress"] = 0
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)
