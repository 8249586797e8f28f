# removals/core/calculator/steps.py
"""
Step sequencer.

Which steps exist for a given answer set is decided by ``SKIP_RULES``, a
single table of pure predicates keyed by step.  Forward, backward and
re-entry navigation all read the same table.
"""
from __future__ import annotations

from typing import Callable, Optional

from removals.core.calculator.domain import (
    STEP_ORDER,
    TERMINAL_STEPS,
    CalcStep,
    CalculatorState,
    DateFlexibility,
    PropertySize,
    ServiceType,
)

__all__ = [
    "SKIP_RULES",
    "SPECIALIST_COLLAPSED_STEPS",
    "is_applicable",
    "applicable_steps",
    "next_step",
    "previous_step",
    "progress_percent",
]

SkipPredicate = Callable[[CalculatorState], bool]


# Steps strictly between SIZE and CONTACT: removed when a furniture-only
# job includes a specialist item (the case goes straight to a callback).
SPECIALIST_COLLAPSED_STEPS: frozenset[CalcStep] = frozenset(
    STEP_ORDER[STEP_ORDER.index(CalcStep.SIZE) + 1:STEP_ORDER.index(CalcStep.CONTACT)]
)


def _specialist_collapse(state: CalculatorState) -> bool:
    return state.has_specialist_items


def _skip_volume(state: CalculatorState) -> bool:
    return (
        state.property_size == PropertySize.STUDIO
        or state.service_type in (ServiceType.OFFICE, ServiceType.CLEARANCE)
    )


def _skip_date_picker(state: CalculatorState) -> bool:
    return state.date_flexibility == DateFlexibility.UNKNOWN


def _skip_quote(state: CalculatorState) -> bool:
    return state.callback_required


def _skip_callback(state: CalculatorState) -> bool:
    return not state.callback_required


def _never(state: CalculatorState) -> bool:
    return False


def _any_of(*predicates: SkipPredicate) -> SkipPredicate:
    def _combined(state: CalculatorState) -> bool:
        return any(p(state) for p in predicates)
    return _combined


def _build_skip_rules() -> dict[CalcStep, SkipPredicate]:
    own: dict[CalcStep, SkipPredicate] = {
        CalcStep.VOLUME: _skip_volume,
        CalcStep.DATE_PICKER: _skip_date_picker,
        CalcStep.QUOTE: _skip_quote,
        CalcStep.CALLBACK: _skip_callback,
    }
    rules: dict[CalcStep, SkipPredicate] = {}
    for step in STEP_ORDER:
        predicate = own.get(step, _never)
        if step in SPECIALIST_COLLAPSED_STEPS:
            predicate = _any_of(predicate, _specialist_collapse)
        rules[step] = predicate
    return rules


SKIP_RULES: dict[CalcStep, SkipPredicate] = _build_skip_rules()


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------

def is_applicable(step: CalcStep, state: CalculatorState) -> bool:
    return not SKIP_RULES[CalcStep(step)](state)


def applicable_steps(state: CalculatorState) -> list[CalcStep]:
    """Steps that exist for this answer set, in display order."""
    return [step for step in STEP_ORDER if is_applicable(step, state)]


def next_step(state: CalculatorState, from_step: Optional[CalcStep] = None) -> Optional[CalcStep]:
    """Nearest applicable step after *from_step* (default: current), or None at the end.

    The two terminal steps are alternatives, never consecutive: moving
    forward from either one returns None.
    """
    current = CalcStep(from_step or state.current_step)
    if current in TERMINAL_STEPS:
        return None
    for step in STEP_ORDER[STEP_ORDER.index(current) + 1:]:
        if is_applicable(step, state):
            return step
    return None


def previous_step(state: CalculatorState, from_step: Optional[CalcStep] = None) -> Optional[CalcStep]:
    """Nearest applicable non-terminal step before *from_step*, or None at the start."""
    current = CalcStep(from_step or state.current_step)
    for step in reversed(STEP_ORDER[:STEP_ORDER.index(current)]):
        if step in TERMINAL_STEPS:
            continue
        if is_applicable(step, state):
            return step
    return None


def progress_percent(state: CalculatorState) -> int:
    """Position of the current step among the applicable ones, 0–100."""
    steps = applicable_steps(state)
    if len(steps) <= 1:
        return 100
    try:
        index = steps.index(state.current_step)
    except ValueError:
        return 0
    return round(index * 100 / (len(steps) - 1))
