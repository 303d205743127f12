import httpx
import pytest

from conftest import assign_response, combo_tool


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_system_health(runner):
    result = runner.invoke(args=["system", "health"])

    assert result.exit_code == 0
    assert "PASS Backend reachable" in result.output


def test_system_health_unreachable(runner, fake_backend):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    fake_backend.add("GET", "/", handler=refuse)

    result = runner.invoke(args=["system", "health"])

    assert result.exit_code == 1


def test_tools_serials(runner, fake_backend):
    fake_backend.add("GET", "/tools/101/", json_body=combo_tool(["A", "B", "C", "D"]))

    result = runner.invoke(args=[
        "tools", "serials", "101", "--equipment-type", "Base & Rover Combo", "--token", "t",
    ])

    assert result.exit_code == 0
    assert "Receivers:      A, B" in result.output
    assert "External Radio: D" in result.output


def test_tools_assign_reports_incomplete_set(runner, fake_backend):
    fake_backend.add("POST", "/tools/assign-random/", json_body=assign_response())
    fake_backend.add("GET", "/tools/101/", json_body=combo_tool(["R1", "R2", "DL1"]))

    result = runner.invoke(args=[
        "tools", "assign", "Hi-Target V200 Combo", "--equipment-type", "Base & Rover Combo",
    ])

    assert result.exit_code == 1
    assert fake_backend.calls("POST", "/tools/assign-random/")


def test_sales_export_csv(runner, fake_backend, tmp_path):
    fake_backend.add("GET", "/sales/", json_body=[
        {"id": 1, "name": "Ada Obi", "total_cost": "100", "items": []},
    ])
    out = tmp_path / "sales.csv"

    result = runner.invoke(args=["sales", "export", "--format", "csv", "--out", str(out)])

    assert result.exit_code == 0
    assert out.read_text(encoding="utf-8").splitlines()[1].startswith("Ada Obi")


def test_sales_export_backend_down(runner, fake_backend):
    fake_backend.add("GET", "/sales/", status=500, json_body={"error": "boom"})

    result = runner.invoke(args=["sales", "export", "--format", "csv"])

    assert result.exit_code == 1


def test_payments_export_owing_csv(runner, fake_backend, tmp_path):
    fake_backend.add("GET", "/customers/owing/", json_body=[
        {"id": 1, "name": "Ada Obi", "totalSellingPrice": 1500000, "amountPaid": 500000,
         "amountLeft": 1000000, "dateNextInstallment": "2000-01-01"},
        {"id": 2, "name": "Bola Ade", "totalSellingPrice": 500000, "amountPaid": 500000, "amountLeft": 0},
    ])
    out = tmp_path / "owing.csv"

    result = runner.invoke(args=[
        "payments", "export", "--report", "owing", "--format", "csv", "--status", "overdue", "--out", str(out),
    ])

    assert result.exit_code == 0
    lines = out.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert lines[1].startswith("Ada Obi")
    assert lines[1].endswith("Overdue")


def test_payments_export_backend_down(runner, fake_backend):
    fake_backend.add("GET", "/payments/", status=500, json_body={"error": "boom"})

    result = runner.invoke(args=["payments", "export", "--format", "csv"])

    assert result.exit_code == 1
