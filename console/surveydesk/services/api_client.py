# Overview: HTTP client for the REST backend; every console operation that reads or writes data goes through here.

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..models import Customer, CustomerBalance, GroupedTool, Payment, Sale, SoldSerialInfo, Tool


logger = logging.getLogger(__name__)


class BackendError(Exception):
    """
    Raised when a backend call fails.

    status_code is None for transport failures (connection refused, timeout),
    otherwise the HTTP status the backend answered with.
    """
    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    @property
    def is_transport_error(self) -> bool:
        return self.status_code is None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        for key in ("error", "detail", "message"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {response.status_code}"


class BackendClient:
    """
    httpx wrapper with bearer authentication and one method per backend operation.

    The token is read from whatever client-side storage the caller uses
    (Flask session, config, CLI option); an absent token is sent as-is and the
    backend decides.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        """Build request headers with optional auth."""
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Backend %s %s failed: %s", method, path, exc)
            raise BackendError(f"Could not reach backend: {exc}") from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.info("Backend %s %s -> %s %s", method, path, response.status_code, message)
            payload = None
            try:
                payload = response.json()
            except ValueError:
                pass
            raise BackendError(message, status_code=response.status_code, payload=payload)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError("Backend returned invalid JSON", status_code=response.status_code) from exc

    def get(self, path: str, params: Optional[Dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[Dict] = None) -> Any:
        return self.request("POST", path, json=json)

    def patch(self, path: str, json: Optional[Dict] = None) -> Any:
        return self.request("PATCH", path, json=json)

    # Sales

    def get_sales(self) -> list[Sale]:
        return [Sale.from_dict(s) for s in self.get("/sales/") or []]

    def create_sale(self, payload: dict) -> Sale:
        return Sale.from_dict(self.post("/sales/", json=payload) or {})

    def update_sale_status(self, sale_id: int, status: str) -> Any:
        return self.patch(f"/sales/{sale_id}/", json={"payment_status": status})

    # Customers

    def get_customers(self) -> list[Customer]:
        return [Customer.from_dict(c) for c in self.get("/customers/") or []]

    def register_customer(self, name: str, email: str, phone: str, state: str) -> Customer:
        data = self.post("/customers/add", json={
            "name": name,
            "email": email,
            "phone": phone,
            "state": state,
        })
        return Customer.from_dict(data or {"name": name, "email": email, "phone": phone, "state": state, "id": None})

    def activate_customer(self, customer_id: int) -> Any:
        return self.post(f"/customers/activate/{customer_id}/", json={})

    def get_customer_balances(self) -> list[CustomerBalance]:
        """Installment balances; the backend answers {summary, customers} or a bare list."""
        data = self.get("/customers/owing/") or []
        if isinstance(data, dict):
            data = data.get("customers") or []
        return [CustomerBalance.from_dict(c) for c in data]

    # Payments

    def get_payments(self) -> list[Payment]:
        return [Payment.from_dict(p) for p in self.get("/payments/") or []]

    # Tools

    def get_tools(self) -> list[Tool]:
        return [Tool.from_dict(t) for t in self.get("/tools/") or []]

    def create_tool(self, data: dict) -> Tool:
        return Tool.from_dict(self.post("/tools/", json=data) or {})

    def update_tool(self, tool_id: str, patch: dict) -> Tool:
        return Tool.from_dict(self.patch(f"/tools/{tool_id}/", json=patch) or {"id": tool_id})

    def get_tool(self, tool_id: str) -> Tool:
        data = self.get(f"/tools/{tool_id}/")
        if not data:
            raise BackendError("Failed to fetch complete tool data")
        return Tool.from_dict(data)

    def get_grouped_tools(self, category: str, equipment_type: Optional[str] = None) -> list[GroupedTool]:
        params = {"category": category}
        if equipment_type:
            params["equipment_type"] = equipment_type
        return [GroupedTool.from_dict(g) for g in self.get("/tools/grouped/", params=params) or []]

    def assign_random_tool(self, tool_name: str, category: str, equipment_type: Optional[str] = None) -> dict:
        """Ask the backend to allocate one available unit of the named group; returns the raw response."""
        return self.post("/tools/assign-random/", json={
            "tool_name": tool_name,
            "category": category,
            "equipment_type": equipment_type,
        }) or {}

    def get_sold_serials(self, tool_id: str) -> list[SoldSerialInfo]:
        return [SoldSerialInfo.from_dict(s) for s in self.get(f"/tools/{tool_id}/sold-serials/") or []]

    # Email

    def send_sale_email(self, to_email: str, subject: str, message: str) -> Any:
        return self.post("/send-sale-email/", json={
            "to_email": to_email,
            "subject": subject,
            "message": message,
        })

    def ping(self) -> int:
        """Return the HTTP status of the API root; any answer means the backend is reachable."""
        try:
            response = self.client.get(f"{self.base_url}/", headers=self._headers())
        except httpx.HTTPError as exc:
            raise BackendError(f"Could not reach backend: {exc}") from exc
        return response.status_code

    def close(self):
        self.client.close()

    def __enter__(self) -> "BackendClient":
        return self

    def __exit__(self, *exc_info):
        self.close()
