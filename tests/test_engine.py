# tests/test_engine.py
"""Tests for the synchronous calculator engine: advance / retreat / quote."""
from datetime import date, datetime, timezone

from removals.core.calculator import engine
from removals.core.calculator.domain import (
    CalcStep,
    CalculatorState,
    DateFlexibility,
    PropertySize,
    ResourcePlan,
    ServiceType,
)
from removals.core.calculator.engine import (
    QuoteResult,
    advance,
    compute_quote,
    effective_plan,
    go_to_step,
    missing_answers,
    new_state,
    retreat,
    submission_payload,
)
from removals.core.calculator.errors import (
    InapplicableStepError,
    ManualOverrideBoundsError,
    StepValidationError,
)

TODAY = date(2026, 3, 2)


def _walk(answers: dict, *, until: CalcStep | None = None) -> CalculatorState:
    """Answer steps in order until a terminal step (or *until*) is reached."""
    state = new_state()
    while state.current_step in answers and state.current_step != until:
        outcome = advance(state, answers[state.current_step], today=TODAY)
        assert outcome.ok, outcome.errors
        state = outcome.state
    return state


class TestAdvance:
    def test_full_home_flow(self, home_answers):
        state = _walk(home_answers)
        assert state.current_step == CalcStep.QUOTE
        assert state.from_address.postcode == "BS1 4DJ"
        assert state.complications == []
        assert state.contact.terms_accepted is True

    def test_input_state_not_mutated(self, home_answers):
        state = new_state()
        outcome = advance(state, home_answers[CalcStep.SERVICE_TYPE], today=TODAY)
        assert outcome.state is not state
        assert state.service_type is None
        assert state.current_step == CalcStep.SERVICE_TYPE
        assert outcome.state.current_step == CalcStep.SIZE

    def test_invalid_answer_returns_original_state(self):
        state = new_state()
        outcome = advance(state, {"service_type": "boat"}, today=TODAY)
        assert not outcome.ok
        assert outcome.state is state
        assert isinstance(outcome.errors[0], StepValidationError)
        assert outcome.errors[0].field == "service_type"

    def test_studio_skips_volume(self, home_answers):
        home_answers[CalcStep.SIZE] = {"property_size": "studio"}
        state = _walk(home_answers, until=CalcStep.RECOMMENDATION)
        assert state.current_step == CalcStep.RECOMMENDATION
        assert state.slider_position is None

    def test_unknown_date_skips_picker(self, home_answers):
        home_answers[CalcStep.DATE_FLEXIBILITY] = {"date_flexibility": "unknown"}
        state = _walk(home_answers, until=CalcStep.COMPLICATIONS)
        assert state.current_step == CalcStep.COMPLICATIONS
        assert state.selected_date is None

    def test_past_date_rejected(self, home_answers):
        state = _walk(home_answers, until=CalcStep.DATE_PICKER)
        outcome = advance(state, {"selected_date": "2026-03-01"}, today=TODAY)
        assert outcome.errors[0].field == "selected_date"

    def test_today_is_allowed(self, home_answers):
        state = _walk(home_answers, until=CalcStep.DATE_PICKER)
        outcome = advance(state, {"selected_date": TODAY.isoformat()}, today=TODAY)
        assert outcome.ok

    def test_specialist_item_goes_to_contact_then_callback(self, home_answers):
        home_answers[CalcStep.SERVICE_TYPE] = {"service_type": "clearance"}
        home_answers[CalcStep.SIZE] = {"item_count": 1, "specialist_items": ["safe"]}
        state = _walk(home_answers)
        assert state.current_step == CalcStep.CALLBACK
        assert state.callback_required is True

    def test_advance_from_terminal_step(self, completed_home_state):
        outcome = advance(completed_home_state, {}, today=TODAY)
        assert isinstance(outcome.errors[0], InapplicableStepError)
        assert outcome.state is completed_home_state

    def test_advance_on_skipped_step(self):
        state = CalculatorState(
            current_step=CalcStep.VOLUME,
            service_type=ServiceType.HOME,
            property_size=PropertySize.STUDIO,
        )
        outcome = advance(state, {"slider_position": 3}, today=TODAY)
        assert isinstance(outcome.errors[0], InapplicableStepError)


class TestManualOverride:
    def _at_recommendation(self, home_answers):
        return _walk(home_answers, until=CalcStep.RECOMMENDATION)

    def test_valid_override(self, home_answers):
        state = self._at_recommendation(home_answers)
        outcome = advance(state, {"vans": 1, "movers": 3}, today=TODAY)
        assert outcome.ok
        assert outcome.state.manual_override == ResourcePlan(vans=1, movers=3)
        assert effective_plan(outcome.state) == ResourcePlan(vans=1, movers=3, load_hours=4.0)

    def test_out_of_bounds_marks_pending(self, home_answers):
        state = self._at_recommendation(home_answers)
        outcome = advance(state, {"vans": 1, "movers": 5}, today=TODAY)

        assert isinstance(outcome.errors[0], ManualOverrideBoundsError)
        assert outcome.state is not state
        assert outcome.state.current_step == CalcStep.RECOMMENDATION
        assert outcome.state.manual_override_pending is True
        assert outcome.state.manual_override is None
        assert outcome.state.callback_required is True
        assert state.manual_override_pending is False

    def test_accept_clears_pending(self, home_answers):
        state = self._at_recommendation(home_answers)
        rejected = advance(state, {"vans": 2, "movers": 1}, today=TODAY).state
        outcome = advance(rejected, {"accept": True}, today=TODAY)
        assert outcome.ok
        assert outcome.state.manual_override_pending is False
        assert outcome.state.callback_required is False

    def test_unresolved_override_reaches_callback(self, completed_home_state):
        completed_home_state.current_step = CalcStep.CONTACT
        completed_home_state.manual_override_pending = True
        outcome = advance(completed_home_state, {
            "first_name": "Sam",
            "last_name": "Taylor",
            "phone": "+447700900123",
            "email": "sam@example.com",
            "terms_accepted": True,
        }, today=TODAY)
        assert outcome.state.current_step == CalcStep.CALLBACK


class TestRetreatAndGoTo:
    def test_back_from_recommendation_for_studio(self):
        state = CalculatorState(
            current_step=CalcStep.RECOMMENDATION,
            service_type=ServiceType.HOME,
            property_size=PropertySize.STUDIO,
        )
        previous = retreat(state)
        assert previous.current_step == CalcStep.SIZE
        assert previous.property_size == PropertySize.STUDIO
        assert state.current_step == CalcStep.RECOMMENDATION

    def test_back_at_first_step_stays(self):
        assert retreat(new_state()).current_step == CalcStep.SERVICE_TYPE

    def test_go_to_earlier_step_keeps_answers(self, completed_home_state):
        outcome = go_to_step(completed_home_state, CalcStep.COMPLICATIONS)
        assert outcome.ok
        assert outcome.state.current_step == CalcStep.COMPLICATIONS
        assert outcome.state.to_address == completed_home_state.to_address

    def test_go_to_skipped_step(self, completed_home_state):
        completed_home_state.date_flexibility = DateFlexibility.UNKNOWN
        outcome = go_to_step(completed_home_state, "date_picker")
        assert isinstance(outcome.errors[0], InapplicableStepError)

    def test_go_to_later_step(self):
        outcome = go_to_step(new_state(), CalcStep.CONTACT)
        assert isinstance(outcome.errors[0], InapplicableStepError)

    def test_go_to_unknown_step(self):
        outcome = go_to_step(new_state(), "teleport")
        assert outcome.errors[0].step == "teleport"


class TestComputeQuote:
    def test_auto_quote(self, completed_home_state):
        result = compute_quote(completed_home_state, today=TODAY)
        assert isinstance(result, QuoteResult)
        assert result.callback_required is False
        # 2 vans + 3 movers, half day: 100 + 220
        assert result.breakdown.base_cost == 320
        assert result.breakdown.display_total == 910

    def test_quote_is_repeatable(self, completed_home_state):
        first = compute_quote(completed_home_state, today=TODAY)
        second = compute_quote(completed_home_state, today=TODAY)
        assert first.to_dict() == second.to_dict()

    def test_not_at_terminal_step(self, completed_home_state):
        completed_home_state.current_step = CalcStep.CONTACT
        errors = compute_quote(completed_home_state, today=TODAY)
        assert isinstance(errors, list)
        assert isinstance(errors[0], InapplicableStepError)

    def test_missing_answers(self, completed_home_state):
        completed_home_state.from_address = None
        completed_home_state.contact.terms_accepted = False
        errors = compute_quote(completed_home_state, today=TODAY)
        assert {e.field for e in errors} == {"from_address", "terms_accepted"}

    def test_callback_has_no_price(self, completed_home_state):
        completed_home_state.property_size = PropertySize.FIVE_BED_PLUS
        completed_home_state.current_step = CalcStep.CALLBACK
        result = compute_quote(completed_home_state, today=TODAY)
        assert result.callback_required is True
        assert result.breakdown is None
        assert result.to_dict()["breakdown"] is None

    def test_missing_answers_respects_skips(self):
        state = CalculatorState(
            current_step=CalcStep.CALLBACK,
            service_type=ServiceType.CLEARANCE,
        )
        state.furniture = None
        fields = {e.field for e in missing_answers(state)}
        assert "slider_position" not in fields
        assert "item_count" in fields


class TestSubmissionPayload:
    def test_payload_contents(self, completed_home_state):
        completed_home_state.tracking.utm_source = "google"
        quote = compute_quote(completed_home_state, today=TODAY)
        completed_at = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

        payload = submission_payload(completed_home_state, quote, completed_at=completed_at)

        assert "current_step" not in payload
        assert payload["estimated_cubes"] == 750
        assert payload["recommendation"] == {"vans": 2, "movers": 3, "load_hours": 4.0}
        assert payload["from_address_formatted"] == "1 High Street, Bristol, BS1 4DJ"
        assert payload["callback_required"] is False
        assert payload["quote"]["display_total"] == 910
        assert payload["tracking"]["utm_source"] == "google"
        assert payload["completed_at"] == "2026-03-02T12:00:00+00:00"


def test_today_local_returns_date():
    assert isinstance(engine.today_local(), date)
