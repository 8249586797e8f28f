# tests/test_escalation.py
"""Tests for the callback escalation decision."""
from removals.core.calculator.domain import (
    CalculatorState,
    FurnitureDetails,
    OfficeSize,
    PropertySize,
    ServiceType,
)
from removals.core.calculator.escalation import (
    REASON_LARGE_PROPERTY,
    REASON_SPECIALIST_ITEMS,
    REASON_UNRESOLVED_OVERRIDE,
    decide_callback,
)


class TestDecideCallback:
    def test_empty_state_is_auto_quote(self):
        decision = decide_callback(CalculatorState())
        assert decision.required is False
        assert decision.reasons == ()
        assert decision.primary_reason is None

    def test_threshold_is_exclusive(self):
        # 4bed "many" = 2000 cubes: not above the threshold
        state = CalculatorState(
            service_type=ServiceType.HOME, property_size=PropertySize.FOUR_BED, slider_position=4,
        )
        assert state.estimated_cubes == 2000
        assert decide_callback(state).required is False

    def test_large_property(self):
        state = CalculatorState(service_type=ServiceType.HOME, property_size=PropertySize.FIVE_BED_PLUS)
        decision = decide_callback(state)
        assert decision.required is True
        assert decision.reasons == (REASON_LARGE_PROPERTY,)

    def test_large_office_is_auto_quote(self):
        state = CalculatorState(service_type=ServiceType.OFFICE, office_size=OfficeSize.LARGE)
        assert decide_callback(state).required is False

    def test_specialist_items(self):
        state = CalculatorState(
            service_type=ServiceType.CLEARANCE,
            furniture=FurnitureDetails(item_count=1, specialist_items=["piano"]),
        )
        decision = decide_callback(state)
        assert decision.required is True
        assert decision.primary_reason == REASON_SPECIALIST_ITEMS

    def test_unresolved_override(self):
        state = CalculatorState(
            service_type=ServiceType.HOME,
            property_size=PropertySize.TWO_BED,
            manual_override_pending=True,
        )
        assert decide_callback(state).reasons == (REASON_UNRESOLVED_OVERRIDE,)

    def test_multiple_reasons_keep_order(self):
        state = CalculatorState(
            service_type=ServiceType.HOME,
            property_size=PropertySize.FIVE_BED_PLUS,
            manual_override_pending=True,
        )
        assert decide_callback(state).reasons == (REASON_LARGE_PROPERTY, REASON_UNRESOLVED_OVERRIDE)

    def test_to_dict(self):
        state = CalculatorState(service_type=ServiceType.HOME, property_size=PropertySize.FIVE_BED_PLUS)
        assert decide_callback(state).to_dict() == {"required": True, "reasons": [REASON_LARGE_PROPERTY]}
