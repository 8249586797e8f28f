# tests/test_domain.py
"""Tests for domain models and state serialization"""
from datetime import date, datetime, timezone

from removals.core.calculator.domain import (
    STEP_ORDER,
    TERMINAL_STEPS,
    Address,
    AssemblyItem,
    CalcStep,
    CalculatorState,
    CleaningType,
    Complication,
    Extras,
    FurnitureDetails,
    ResourcePlan,
    RouteEstimate,
    ServiceType,
    Tracking,
)


class TestCalcStep:
    def test_order_starts_and_ends(self):
        assert STEP_ORDER[0] == CalcStep.SERVICE_TYPE
        assert STEP_ORDER[-2:] == (CalcStep.QUOTE, CalcStep.CALLBACK)

    def test_terminal_steps(self):
        assert TERMINAL_STEPS == {CalcStep.QUOTE, CalcStep.CALLBACK}

    def test_str_enum_values(self):
        assert CalcStep("date_picker") == CalcStep.DATE_PICKER
        assert ServiceType.CLEARANCE.value == "clearance"


class TestAddress:
    def test_formatted(self):
        address = Address(line="1 High Street", city="Bristol", postcode="BS1 4DJ")
        assert address.formatted == "1 High Street, Bristol, BS1 4DJ"


class TestExtras:
    def test_assembly_items_merge_by_type(self):
        extras = Extras()
        extras.add_assembly_item("simple", 2)
        extras.add_assembly_item("complex", 1)
        extras.add_assembly_item("simple", 3)
        assert extras.assembly_items == [
            AssemblyItem(type="simple", quantity=5),
            AssemblyItem(type="complex", quantity=1),
        ]


class TestFurnitureDetails:
    def test_has_specialist(self):
        assert FurnitureDetails(item_count=1).has_specialist is False
        assert FurnitureDetails(item_count=1, specialist_items=["piano"]).has_specialist is True


class TestStateSerialization:
    def test_empty_state_round_trip(self):
        state = CalculatorState()
        assert CalculatorState.from_dict(state.to_dict()) == state

    def test_full_state_round_trip(self, completed_home_state):
        completed_home_state.manual_override = ResourcePlan(vans=2, movers=4)
        completed_home_state.complications = [Complication.STAIRS, Complication.PLANTS]
        completed_home_state.route = RouteEstimate(
            total_miles=32.5, drive_time_hours=1.2, customer_miles=12.0, customer_drive_minutes=25,
        )
        completed_home_state.extras = Extras(
            packing_tier="fragile",
            cleaning_rooms=3,
            cleaning_type=CleaningType.DEEP,
            storage_size="gardenShed",
            storage_weeks=12,
            assembly_items=[AssemblyItem(type="general", quantity=2)],
        )
        completed_home_state.tracking = Tracking(
            session_id="abc123",
            gclid="gclid-1",
            utm_source="google",
            started_at=datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc),
        )

        restored = CalculatorState.from_dict(completed_home_state.to_dict())

        assert restored == completed_home_state
        assert restored.selected_date == date(2026, 4, 15)
        assert restored.tracking.started_at.tzinfo is not None

    def test_to_dict_is_json_compatible(self, completed_home_state):
        data = completed_home_state.to_dict()
        assert data["current_step"] == "quote"
        assert data["service_type"] == "home"
        assert data["property_size"] == "2bed"
        assert data["selected_date"] == "2026-04-15"
        assert data["extras"]["cleaning_type"] == "quick"

    def test_derived_fields_not_stored(self, completed_home_state):
        data = completed_home_state.to_dict()
        assert "estimated_cubes" not in data
        assert "resource_recommendation" not in data
        assert "callback_required" not in data

    def test_unanswered_complications_stay_none(self):
        restored = CalculatorState.from_dict(CalculatorState().to_dict())
        assert restored.complications is None
        assert restored.active_complications == []

    def test_clearance_round_trip(self):
        state = CalculatorState(
            service_type=ServiceType.CLEARANCE,
            furniture=FurnitureDetails(
                item_count=3,
                specialist_items=["other"],
                other_specialist_description="Antique organ",
            ),
        )
        restored = CalculatorState.from_dict(state.to_dict())
        assert restored.furniture.other_specialist_description == "Antique organ"
        assert restored.has_specialist_items is True
