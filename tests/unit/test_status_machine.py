"""Tests for plan_transition and the pure validation helpers."""
from uuid import uuid4

import pytest

from app.core.exceptions import InvalidSubStatus, InvalidTransition, MissingRequiredFields, ValidationError
from app.models.enums import ShipmentStatus, ShipmentSubStatus
from app.services.lifecycle.status_machine import (
    plan_transition,
    validate_mandatory_fields,
    validate_sub_status,
)
from tests.conftest import NOW


class TestPlanTransition:

    def test_confirm_created_shipment(self, make_shipment):
        shipment = make_shipment()

        plan = plan_transition(shipment, ShipmentStatus.CONFIRMED, now=NOW)

        assert plan.status_changed is True
        assert plan.previous_status == ShipmentStatus.CREATED
        assert plan.updates == {
            "status": ShipmentStatus.CONFIRMED,
            "sub_status": None,
            "confirmed_at": NOW,
        }

    def test_accepts_string_values(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.MAPPED)
        plan = plan_transition(shipment, "in_pickup", "vehicle_placed", now=NOW)
        assert plan.new_status == ShipmentStatus.IN_PICKUP
        assert plan.new_sub_status == ShipmentSubStatus.VEHICLE_PLACED
        assert plan.updates["in_pickup_at"] == NOW

    def test_same_status_with_sub_status_restamps_status_time(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.IN_TRANSIT, sub_status=ShipmentSubStatus.ON_TIME)

        plan = plan_transition(shipment, ShipmentStatus.IN_TRANSIT, ShipmentSubStatus.ON_TIME, now=NOW)

        assert plan.status_changed is False
        assert plan.updates["in_transit_at"] == NOW
        assert plan.updates["sub_status"] == ShipmentSubStatus.ON_TIME

    def test_same_status_without_sub_status_rejected(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.MAPPED)
        with pytest.raises(InvalidTransition, match="already Mapped"):
            plan_transition(shipment, ShipmentStatus.MAPPED)

    def test_edge_not_in_graph(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.CREATED)

        with pytest.raises(InvalidTransition) as exc_info:
            plan_transition(shipment, ShipmentStatus.IN_TRANSIT)

        assert exc_info.value.message == "Cannot transition from Created to In Transit"
        assert exc_info.value.ids == {"shipment_id": str(shipment.id)}
        # Validation never touches the shipment
        assert shipment.status == ShipmentStatus.CREATED

    def test_terminal_status_is_final(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.SUCCESS)
        with pytest.raises(InvalidTransition):
            plan_transition(shipment, ShipmentStatus.DELIVERED)

    def test_unknown_status(self, make_shipment):
        with pytest.raises(InvalidTransition, match="Unknown status"):
            plan_transition(make_shipment(), "teleported")

    def test_unknown_sub_status(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.MAPPED)
        with pytest.raises(InvalidSubStatus, match="Invalid sub-status"):
            plan_transition(shipment, ShipmentStatus.IN_PICKUP, "half_loaded")

    def test_sub_status_from_wrong_progression(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.MAPPED)
        with pytest.raises(InvalidSubStatus, match="In Pickup"):
            plan_transition(shipment, ShipmentStatus.IN_PICKUP, ShipmentSubStatus.BILLED)

    def test_sub_status_stamps_its_field(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.IN_PICKUP, sub_status=ShipmentSubStatus.VEHICLE_PLACED)
        plan = plan_transition(shipment, ShipmentStatus.IN_PICKUP, ShipmentSubStatus.LOADING_STARTED, now=NOW)
        assert plan.updates["loading_started_at"] == NOW

    def test_status_change_resets_sub_status(self, make_shipment):
        shipment = make_shipment(
            status=ShipmentStatus.IN_PICKUP,
            sub_status=ShipmentSubStatus.READY_FOR_DISPATCH,
        )
        plan = plan_transition(shipment, ShipmentStatus.IN_TRANSIT, now=NOW)
        assert plan.previous_sub_status == ShipmentSubStatus.READY_FOR_DISPATCH
        assert plan.updates["sub_status"] is None

    def test_backward_edge_allowed(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.IN_TRANSIT)
        plan = plan_transition(shipment, ShipmentStatus.IN_PICKUP, now=NOW)
        assert plan.new_status == ShipmentStatus.IN_PICKUP


class TestGuardedEdges:

    def test_mapping_requires_trip(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.CONFIRMED)

        with pytest.raises(ValidationError, match="linked to a trip") as exc_info:
            plan_transition(shipment, ShipmentStatus.MAPPED, now=NOW)

        assert exc_info.value.kind == "validation_error"

    def test_mapping_with_trip(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.CONFIRMED, trip_id=uuid4())
        plan = plan_transition(shipment, ShipmentStatus.MAPPED, now=NOW)
        assert plan.updates["mapped_at"] == NOW

    @pytest.mark.parametrize("sub_status", [
        None,
        ShipmentSubStatus.POD_PENDING,
        ShipmentSubStatus.POD_CLEANED,
        ShipmentSubStatus.BILLED,
    ])
    def test_success_blocked_until_paid(self, make_shipment, sub_status):
        shipment = make_shipment(status=ShipmentStatus.DELIVERED, sub_status=sub_status)

        with pytest.raises(ValidationError, match="must be completed before Success"):
            plan_transition(shipment, ShipmentStatus.SUCCESS, now=NOW)

    def test_success_after_paid(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.DELIVERED, sub_status=ShipmentSubStatus.PAID)
        plan = plan_transition(shipment, ShipmentStatus.SUCCESS, now=NOW)
        assert plan.new_status == ShipmentStatus.SUCCESS

    def test_ndr_from_delivered_is_not_gated(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.DELIVERED, sub_status=ShipmentSubStatus.POD_PENDING)
        plan = plan_transition(shipment, ShipmentStatus.NDR, now=NOW)
        assert plan.new_status == ShipmentStatus.NDR


class TestSubStatusProgression:

    def test_forward(self):
        validate_sub_status(
            ShipmentStatus.DELIVERED,
            ShipmentSubStatus.POD_PENDING,
            ShipmentSubStatus.BILLED,
        )

    def test_same_position(self):
        validate_sub_status(
            ShipmentStatus.DELIVERED,
            ShipmentSubStatus.BILLED,
            ShipmentSubStatus.BILLED,
        )

    def test_regression_rejected(self):
        with pytest.raises(InvalidSubStatus, match="Cannot go back from Billed to POD Pending"):
            validate_sub_status(
                ShipmentStatus.DELIVERED,
                ShipmentSubStatus.BILLED,
                ShipmentSubStatus.POD_PENDING,
            )

    def test_current_from_other_progression_counts_as_not_started(self):
        validate_sub_status(
            ShipmentStatus.IN_TRANSIT,
            ShipmentSubStatus.READY_FOR_DISPATCH,
            ShipmentSubStatus.ON_TIME,
        )

    def test_status_without_progression(self):
        with pytest.raises(InvalidSubStatus):
            validate_sub_status(ShipmentStatus.CONFIRMED, None, ShipmentSubStatus.ON_TIME)


class TestMandatoryFields:

    def test_complete_shipment(self, make_shipment):
        assert validate_mandatory_fields(make_shipment()) == []

    def test_reports_missing_in_order(self, make_shipment):
        shipment = make_shipment(consignee_code="", drop_location_id=None)
        assert validate_mandatory_fields(shipment) == ["consignee_code", "drop_location_id"]

    def test_confirmation_blocked(self, make_shipment):
        shipment = make_shipment(material_id=None)

        with pytest.raises(MissingRequiredFields) as exc_info:
            plan_transition(shipment, ShipmentStatus.CONFIRMED)

        assert exc_info.value.missing_fields == ["material_id"]
        assert exc_info.value.to_dict()["kind"] == "missing_required_fields"

    def test_only_checked_when_confirming(self, make_shipment):
        shipment = make_shipment(status=ShipmentStatus.CONFIRMED, material_id=None, trip_id=uuid4())
        plan = plan_transition(shipment, ShipmentStatus.MAPPED, now=NOW)
        assert plan.new_status == ShipmentStatus.MAPPED
