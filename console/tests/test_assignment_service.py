import json

import httpx
import pytest

from surveydesk.models import CurrentItem, GroupedTool, SerialBreakdown
from surveydesk.services.assignment_service import (
    INCOMPLETE_SET,
    NO_STOCK,
    NO_STOCK_MESSAGE,
    TRANSPORT,
    TRANSPORT_MESSAGE,
    AssignmentEpoch,
    AssignmentError,
    assign_equipment_set,
    merge_serials,
    missing_combo_component,
    sale_item_from_assignment,
    validate_assignment,
)

from conftest import COMBO_GROUP, assign_response, combo_tool


COMBO = "Base & Rover Combo"


def combo_item(cost: str = "1500000") -> CurrentItem:
    return CurrentItem(
        selected_category="Receiver",
        selected_equipment_type=COMBO,
        selected_tool=GroupedTool.from_dict(COMBO_GROUP),
        cost=cost,
    )


@pytest.mark.assignment
class TestMergeSerials:

    def test_primary_wins_when_it_has_receivers(self):
        primary = SerialBreakdown(["R1", "R2"], None, "E1")
        fallback = SerialBreakdown(["X1", "X2"], "D9", "E9")

        merged = merge_serials(primary, fallback)

        assert merged.serial_set == ["R1", "R2"]
        assert merged.datalogger_serial is None
        assert merged.external_radio_serial == "E1"

    def test_fallback_used_when_primary_has_no_receivers(self):
        primary = SerialBreakdown([], "D1", None)
        fallback = SerialBreakdown(["X1", "X2"], "D9", "E9")

        merged = merge_serials(primary, fallback)

        assert merged.serial_set == ["X1", "X2"]
        assert merged.datalogger_serial == "D1"
        assert merged.external_radio_serial == "E9"

    def test_empty_fallback_leaves_primary(self):
        primary = SerialBreakdown([], "D1", None)

        assert merge_serials(primary, SerialBreakdown()) == primary
        assert merge_serials(primary, None) == primary

    def test_missing_primary(self):
        assert merge_serials(None, SerialBreakdown(["X1"])).serial_set == ["X1"]


@pytest.mark.assignment
class TestValidation:

    def test_complete_combo_passes(self):
        validate_assignment(SerialBreakdown(["R1", "R2"], "D1", "E1"), COMBO)

    @pytest.mark.parametrize("breakdown, missing", [
        (SerialBreakdown(["R1", "R2"], "D1", None), "External Radio"),
        (SerialBreakdown(["R1", "R2"], None, "E1"), "Datalogger"),
        (SerialBreakdown(["R1"], "D1", "E1"), "Receiver"),
        (SerialBreakdown([], None, None), "External Radio"),
    ])
    def test_incomplete_combo_names_missing_part(self, breakdown, missing):
        assert missing_combo_component(breakdown) == missing
        with pytest.raises(AssignmentError) as exc_info:
            validate_assignment(breakdown, COMBO)

        assert exc_info.value.kind == INCOMPLETE_SET
        assert f"Missing: {missing}" in str(exc_info.value)

    @pytest.mark.parametrize("set_type", ["Base Only", "Rover Only", None, ""])
    def test_other_set_types_are_not_validated(self, set_type):
        validate_assignment(SerialBreakdown([], None, None), set_type)


@pytest.mark.assignment
class TestAssignEquipmentSet:

    def test_complete_combo_from_full_record(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", json_body=assign_response())
        fake_backend.add("GET", "/tools/101/", json_body=combo_tool(["R1", "DL-1", "R2", "ER-1"]))

        result = assign_equipment_set(backend_client, combo_item())

        assert result.assigned_tool_id == "101"
        assert result.serial_set == ["R1", "R2"]
        assert result.serial_count == 2
        assert result.datalogger_serial == "DL-1"
        assert result.external_radio_serial == "ER-1"
        assert result.set_type == COMBO
        assert result.invoice_number == "SAL-001"
        assert result.import_invoice == "IMP-77"

        sent = fake_backend.last_json("POST", "/tools/assign-random/")
        assert sent == {"tool_name": "Hi-Target V200 Combo", "category": "Receiver", "equipment_type": COMBO}

    def test_one_receiver_and_no_radio_is_rejected(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", json_body=assign_response(serial_set=["R1"]))
        fake_backend.add("GET", "/tools/101/", json_body=combo_tool({"receiver1": "R1", "data_logger": "D1"}))

        with pytest.raises(AssignmentError) as exc_info:
            assign_equipment_set(backend_client, combo_item())

        assert exc_info.value.kind == INCOMPLETE_SET

    def test_complete_set_only_in_assign_response_is_accepted(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", json_body=assign_response(
            serial_set=["R1", "R2"], datalogger_serial="D1", external_radio_serial="E1",
        ))
        fake_backend.add("GET", "/tools/101/", json_body=combo_tool(None))

        result = assign_equipment_set(backend_client, combo_item())

        assert result.serial_set == ["R1", "R2"]
        assert result.datalogger_serial == "D1"
        assert result.external_radio_serial == "E1"

    def test_missing_radio_everywhere_names_external_radio(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", json_body=assign_response(
            serial_set=["R1", "R2"], datalogger_serial="DL1",
        ))
        fake_backend.add("GET", "/tools/101/", json_body=combo_tool(["R1", "R2", "DL1"]))

        with pytest.raises(AssignmentError) as exc_info:
            assign_equipment_set(backend_client, combo_item())

        assert exc_info.value.kind == INCOMPLETE_SET
        assert "External Radio" in str(exc_info.value)

    def test_non_receiver_category_skips_set_handling(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", json_body={
            "assigned_tool_id": "300", "tool_name": "Tripod", "cost": "45000",
            "invoice_number": "SAL-9",
        })
        fake_backend.add("GET", "/tools/300/", json_body={
            "id": "300", "name": "Tripod", "category": "Accessory", "serials": ["TP-1"],
            "invoice_number": "IMP-3",
        })
        item = CurrentItem(
            selected_category="Accessory",
            # stale type from a previous receiver pick must not trigger combo rules
            selected_equipment_type=COMBO,
            selected_tool=GroupedTool(name="Tripod", category="Accessory"),
            cost="45000",
        )

        result = assign_equipment_set(backend_client, item)

        assert result.serial_set == ["TP-1"]
        assert result.set_type is None
        assert fake_backend.last_json("POST", "/tools/assign-random/")["equipment_type"] is None

    def test_no_stock_uses_backend_message(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", status=404,
                         json_body={"error": "No available units for Hi-Target V200 Combo"})

        with pytest.raises(AssignmentError) as exc_info:
            assign_equipment_set(backend_client, combo_item())

        assert exc_info.value.kind == NO_STOCK
        assert str(exc_info.value) == "No available units for Hi-Target V200 Combo"
        assert fake_backend.calls("GET", "/tools/101/") == []

    def test_no_stock_default_message(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", status=404, json_body={"detail": "nope"})

        with pytest.raises(AssignmentError) as exc_info:
            assign_equipment_set(backend_client, combo_item())

        assert str(exc_info.value) == NO_STOCK_MESSAGE

    def test_backend_failure_is_transport_error(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", status=500, json_body={"error": "boom"})

        with pytest.raises(AssignmentError) as exc_info:
            assign_equipment_set(backend_client, combo_item())

        assert exc_info.value.kind == TRANSPORT
        assert str(exc_info.value) == TRANSPORT_MESSAGE

    def test_connection_failure_is_transport_error(self, fake_backend, backend_client):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        fake_backend.add("POST", "/tools/assign-random/", handler=refuse)

        with pytest.raises(AssignmentError) as exc_info:
            assign_equipment_set(backend_client, combo_item())

        assert exc_info.value.kind == TRANSPORT

    def test_fetch_failure_after_assign_is_not_retried(self, fake_backend, backend_client):
        fake_backend.add("POST", "/tools/assign-random/", json_body=assign_response())
        fake_backend.add("GET", "/tools/101/", status=503, json_body={"error": "down"})

        with pytest.raises(AssignmentError) as exc_info:
            assign_equipment_set(backend_client, combo_item())

        assert exc_info.value.kind == TRANSPORT
        assert len(fake_backend.calls("POST", "/tools/assign-random/")) == 1
        assert len(fake_backend.calls("GET", "/tools/101/")) == 1

    def test_no_tool_selected(self, backend_client):
        with pytest.raises(AssignmentError, match="No tool selected"):
            assign_equipment_set(backend_client, CurrentItem(selected_category="Receiver"))


@pytest.mark.assignment
def test_sale_item_from_assignment_copies_fields(fake_backend, backend_client):
    fake_backend.add("POST", "/tools/assign-random/", json_body=assign_response())
    fake_backend.add("GET", "/tools/101/", json_body=combo_tool(["A", "B", "C", "D"]))
    current = combo_item(cost="1450000")

    item = sale_item_from_assignment(assign_equipment_set(backend_client, current), current)

    assert item.tool_id == "101"
    assert item.assigned_tool_id == "101"
    assert item.equipment == "Hi-Target V200 Combo"
    assert item.cost == "1450000"
    assert item.category == "Receiver"
    assert item.serial_set == ["A", "B"]
    assert item.datalogger_serial == "C"
    assert item.external_radio_serial == "D"
    assert item.invoice_number == "SAL-001"
    assert item.import_invoice == "IMP-77"


@pytest.mark.assignment
class TestAssignmentEpoch:

    def test_unknown_draft_starts_at_zero(self):
        epochs = AssignmentEpoch()

        assert epochs.current("d1") == 0
        assert epochs.is_current("d1", 0)

    def test_invalidate_makes_token_stale(self):
        epochs = AssignmentEpoch()
        token = epochs.current("d1")

        assert epochs.invalidate("d1") == 1
        assert not epochs.is_current("d1", token)
        assert epochs.is_current("d1", 1)

    def test_drafts_are_counted_separately(self):
        epochs = AssignmentEpoch()
        epochs.invalidate("d1")
        epochs.invalidate("d1")

        assert epochs.current("d1") == 2
        assert epochs.current("d2") == 0
