"""
Pytest fixtures for surveydesk tests.

Provides a scripted fake of the REST backend (httpx.MockTransport), a
BackendClient bound to it, and a Flask app/test client wired to the same fake.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from surveydesk import create_app
from surveydesk.services.api_client import BackendClient


BACKEND_URL = "http://backend.test/api"
API_PREFIX = "/api"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeBackend:
    """
    Scripted backend. Routes are keyed by (method, path without the /api prefix);
    unknown routes answer 404 like a real API would.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[Handler, Tuple[int, Any]]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, json_body: Any = None,
            handler: Optional[Handler] = None) -> None:
        self.routes[(method.upper(), path)] = handler or (status, json_body)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(API_PREFIX):
            path = path[len(API_PREFIX):]
        entry = self.routes.get((request.method, path))
        if entry is None:
            return httpx.Response(404, json={"detail": "Not found."})
        if callable(entry):
            return entry(request)
        status, body = entry
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and r.url.path == f"{API_PREFIX}{path}"
        ]

    def last_json(self, method: str, path: str) -> Any:
        return json.loads(self.calls(method, path)[-1].content)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def backend_client(fake_backend: FakeBackend):
    client = BackendClient(BACKEND_URL, token="test-token", transport=fake_backend.transport)
    yield client
    client.close()


@pytest.fixture
def app(fake_backend: FakeBackend):
    """Create application for testing."""
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "BACKEND_API_URL": BACKEND_URL,
        "BACKEND_TOKEN": None,
        "BACKEND_TRANSPORT": fake_backend.transport,
    })
    yield app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer test-token"}


# Shared payloads

COMBO_GROUP = {
    "name": "Hi-Target V200 Combo",
    "category": "Receiver",
    "cost": "1500000",
    "total_stock": 3,
    "tool_count": 3,
    "group_id": "g-1",
    "invoice_number": "IMP-77",
}

CUSTOMER = {
    "id": 7,
    "name": "Ada Obi",
    "phone": "08030000000",
    "email": "ada@example.com",
    "state": "Lagos",
}


def combo_tool(serials: Any, tool_id: str = "101", invoice_number: str = "IMP-77") -> dict:
    return {
        "id": tool_id,
        "name": "Hi-Target V200 Combo",
        "code": "HT-V200",
        "category": "Receiver",
        "cost": "1500000",
        "stock": 2,
        "serials": serials,
        "invoice_number": invoice_number,
        "equipment_type": "Base & Rover Combo",
    }


def assign_response(tool_id: str = "101", **extra) -> dict:
    data = {
        "assigned_tool_id": tool_id,
        "tool_name": "Hi-Target V200 Combo",
        "set_type": "Base & Rover Combo",
        "cost": "1500000",
        "invoice_number": "SAL-001",
    }
    data.update(extra)
    return data


# =============================================================================
# TEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "serials: Serial normalisation tests")
    config.addinivalue_line("markers", "assignment: Equipment-set assignment and reconciliation tests")
    config.addinivalue_line("markers", "sales: Sale draft and submission tests")
    config.addinivalue_line("markers", "reports: Table, search and export tests")
    config.addinivalue_line("markers", "routes: Console HTTP route tests")
    config.addinivalue_line("markers", "customers: Customer registration and balance tests")
    config.addinivalue_line("markers", "inventory: Tool create and update tests")
