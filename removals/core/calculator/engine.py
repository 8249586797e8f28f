# removals/core/calculator/engine.py
"""
Calculator engine — the public, synchronous API over the step sequencer,
the answer handlers and the pricing pipeline.

Every call takes a state and returns a new one (deep copy); the input is
never mutated.  Errors are returned as values next to the state.

Flow per answer:
    skip-rule check -> validate/apply on a copy -> next applicable step
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from removals.core.calculator.answers import apply_answer
from removals.core.calculator.domain import (
    STEP_ORDER,
    TERMINAL_STEPS,
    CalcStep,
    CalculatorState,
    DateFlexibility,
    ResourcePlan,
    ServiceType,
    Tracking,
)
from removals.core.calculator.errors import (
    CalculatorError,
    InapplicableStepError,
    ManualOverrideBoundsError,
    StepValidationError,
)
from removals.core.calculator.escalation import CallbackDecision
from removals.core.calculator.override import validate_manual_override
from removals.core.calculator.pricing import PriceBreakdown, price_job
from removals.core.calculator.steps import is_applicable, next_step, previous_step

logger = logging.getLogger(__name__)

__all__ = [
    "StepOutcome",
    "QuoteResult",
    "new_state",
    "effective_plan",
    "advance",
    "retreat",
    "go_to_step",
    "missing_answers",
    "compute_quote",
    "validate_manual_override",
    "submission_payload",
    "today_local",
]

_LOCAL_TZ = ZoneInfo("Europe/London")


def today_local() -> date:
    return datetime.now(_LOCAL_TZ).date()


@dataclass
class StepOutcome:
    state: CalculatorState
    errors: list[CalculatorError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class QuoteResult:
    """Price breakdown (auto-quote) or a callback decision without a price."""
    decision: CallbackDecision
    breakdown: Optional[PriceBreakdown] = None

    @property
    def callback_required(self) -> bool:
        return self.decision.required

    def to_dict(self) -> dict:
        return {
            "callback_required": self.callback_required,
            "callback": self.decision.to_dict(),
            "breakdown": self.breakdown.to_dict() if self.breakdown else None,
        }


# ============================================================================
# STATE
# ============================================================================

def new_state(tracking: Optional[Tracking] = None) -> CalculatorState:
    """Fresh, empty state positioned at the first step."""
    state = CalculatorState(tracking=tracking or Tracking())
    if state.tracking.started_at is None:
        state.tracking.started_at = datetime.now(timezone.utc)
    return state


def effective_plan(state: CalculatorState) -> Optional[ResourcePlan]:
    """Crew used for pricing: the manual override (with the recommended
    load time) when present, otherwise the recommendation."""
    recommendation = state.resource_recommendation
    if recommendation is None:
        return None
    if state.manual_override is None:
        return recommendation
    return ResourcePlan(
        vans=state.manual_override.vans,
        movers=state.manual_override.movers,
        load_hours=recommendation.load_hours,
    )


# ============================================================================
# NAVIGATION
# ============================================================================

def advance(
    state: CalculatorState,
    answer: dict[str, Any],
    *,
    today: Optional[date] = None,
) -> StepOutcome:
    """
    Complete the current step with *answer* and move to the next applicable step.

    On a validation failure the input state is returned unchanged with
    the errors.  A manual override outside its bounds returns a copy with
    ``manual_override_pending`` set and ``current_step`` unchanged.
    """
    current = state.current_step

    if current in TERMINAL_STEPS:
        return StepOutcome(state, [InapplicableStepError(
            step=current.value, message=f"{current.value} is a terminal step and takes no answer",
        )])
    if not is_applicable(current, state):
        return StepOutcome(state, [InapplicableStepError(
            step=current.value, message=f"{current.value} does not apply to the current answers",
        )])

    working = copy.deepcopy(state)
    errors = apply_answer(working, answer, today or today_local())

    if errors:
        log_data = {
            "event": "step_rejected",
            "session_id": state.tracking.session_id,
            "step": current.value,
            "fields": [getattr(e, "field", e.kind) for e in errors],
        }
        logger.info("step_rejected", extra=log_data)
        if any(isinstance(e, ManualOverrideBoundsError) for e in errors):
            return StepOutcome(working, errors)
        return StepOutcome(state, errors)

    following = next_step(working)
    if following is None:
        # Exactly one terminal step is always applicable.
        return StepOutcome(state, [InapplicableStepError(
            step=current.value, message="No applicable step follows this one",
        )])

    working.current_step = following
    log_data = {
        "event": "step_advanced",
        "session_id": working.tracking.session_id,
        "from_step": current.value,
        "to_step": following.value,
    }
    logger.info("step_advanced", extra=log_data)
    return StepOutcome(working)


def retreat(state: CalculatorState) -> CalculatorState:
    """Return to the nearest applicable previous step (answers are kept)."""
    working = copy.deepcopy(state)
    previous = previous_step(state)
    if previous is not None:
        working.current_step = previous
    return working


def go_to_step(state: CalculatorState, step: CalcStep | str) -> StepOutcome:
    """Re-enter an earlier (or the current) applicable step, keeping its answers."""
    try:
        target = CalcStep(step)
    except ValueError:
        return StepOutcome(state, [InapplicableStepError(step=str(step), message=f"Unknown step {step!r}")])

    if STEP_ORDER.index(target) > STEP_ORDER.index(state.current_step):
        return StepOutcome(state, [InapplicableStepError(
            step=target.value, message="Only earlier steps can be re-entered",
        )])
    if not is_applicable(target, state):
        return StepOutcome(state, [InapplicableStepError(
            step=target.value, message=f"{target.value} does not apply to the current answers",
        )])

    working = copy.deepcopy(state)
    working.current_step = target
    return StepOutcome(working)


# ============================================================================
# QUOTE
# ============================================================================

def _missing(step: CalcStep, field_name: str) -> StepValidationError:
    return StepValidationError(step=step.value, field=field_name, message=f"{field_name} has not been answered")


def missing_answers(state: CalculatorState) -> list[StepValidationError]:
    """Required answers absent for the applicable steps of this state."""
    checks: dict[CalcStep, list[tuple[str, bool]]] = {
        CalcStep.SERVICE_TYPE: [("service_type", state.service_type is not None)],
        CalcStep.SIZE: [{
            ServiceType.HOME: ("property_size", state.property_size is not None),
            ServiceType.OFFICE: ("office_size", state.office_size is not None),
            ServiceType.CLEARANCE: ("item_count", state.furniture is not None),
        }.get(state.service_type, ("service_type", False))],
        CalcStep.VOLUME: [("slider_position", state.slider_position is not None)],
        CalcStep.DATE_FLEXIBILITY: [("date_flexibility", state.date_flexibility is not None)],
        CalcStep.DATE_PICKER: [("selected_date", (
            state.selected_date is not None or state.date_flexibility == DateFlexibility.UNKNOWN
        ))],
        CalcStep.COMPLICATIONS: [("complications", state.complications is not None)],
        CalcStep.PROPERTY_CHAIN: [("property_chain", state.property_chain is not None)],
        CalcStep.FROM_ADDRESS: [("from_address", state.from_address is not None)],
        CalcStep.TO_ADDRESS: [("to_address", state.to_address is not None)],
        CalcStep.CONTACT: [("terms_accepted", state.contact.terms_accepted)],
    }

    missing: list[StepValidationError] = []
    for step, fields in checks.items():
        if not is_applicable(step, state):
            continue
        missing.extend(_missing(step, name) for name, present in fields if not present)
    return missing


def compute_quote(
    state: CalculatorState,
    *,
    today: Optional[date] = None,
) -> Union[QuoteResult, list[CalculatorError]]:
    """
    Price a state that has reached its terminal step.

    Returns a :class:`QuoteResult` (breakdown is None when the case is
    escalated to a callback) or the list of errors preventing a quote.
    Pure: the same state and date always give the same result.
    """
    if state.current_step not in TERMINAL_STEPS:
        return [InapplicableStepError(
            step=state.current_step.value, message="A quote is only available at the final step",
        )]

    missing = missing_answers(state)
    if missing:
        return list(missing)

    decision = state.callback_decision
    if decision.required:
        log_data = {
            "event": "callback_escalated",
            "session_id": state.tracking.session_id,
            "reasons": list(decision.reasons),
            "estimated_cubes": state.estimated_cubes,
        }
        logger.info("callback_escalated", extra=log_data)
        return QuoteResult(decision=decision)

    breakdown = price_job(
        plan=effective_plan(state),
        cubes=state.estimated_cubes,
        complications=state.active_complications,
        property_chain=bool(state.property_chain),
        route=state.route,
        extras=state.extras,
        quoted_on=today or today_local(),
    )

    log_data = {
        "event": "quote_computed",
        "session_id": state.tracking.session_id,
        "service_type": state.service_type.value if state.service_type else None,
        "estimated_cubes": state.estimated_cubes,
        "vans": breakdown.resources.vans,
        "movers": breakdown.resources.movers,
        "manual_override": state.manual_override is not None,
        "complications": [c.value for c in state.active_complications],
        "route_available": breakdown.route_available,
        "total": breakdown.total,
        "display_total": breakdown.display_total,
    }
    logger.info("quote_computed", extra=log_data)
    return QuoteResult(decision=decision, breakdown=breakdown)


def submission_payload(
    state: CalculatorState,
    quote: QuoteResult,
    *,
    completed_at: Optional[datetime] = None,
) -> dict[str, Any]:
    """Everything the operator needs for a finished session: answers,
    derived figures, quote/callback summary, attribution and completion time."""
    payload = state.to_dict()
    payload.pop("current_step", None)

    recommendation = state.resource_recommendation
    payload["estimated_cubes"] = state.estimated_cubes
    payload["recommendation"] = (
        {"vans": recommendation.vans, "movers": recommendation.movers, "load_hours": recommendation.load_hours}
        if recommendation else None
    )
    payload["from_address_formatted"] = state.from_address.formatted if state.from_address else None
    payload["to_address_formatted"] = state.to_address.formatted if state.to_address else None
    payload["callback_required"] = quote.callback_required
    payload["callback_reasons"] = list(quote.decision.reasons)
    payload["quote"] = quote.breakdown.to_dict() if quote.breakdown else None
    payload["completed_at"] = (completed_at or datetime.now(timezone.utc)).isoformat()
    return payload
