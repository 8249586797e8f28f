# removals/core/calculator/__init__.py
"""
Removal quote calculator -- pure, synchronous domain logic.

Sub-modules:
    domain       — CalculatorState, step ids, answer enums, value objects
    errors       — error values returned by the engine
    rates        — pricing configuration table (data/pricing_config.json)
    recommender  — cubes estimate, van/mover recommendation, packing size
    override     — manual crew override bounds
    pricing      — base -> multiply -> add pricing pipeline
    escalation   — callback decision
    steps        — SKIP_RULES table and navigation
    answers      — per-step answer validation
    engine       — advance / retreat / go_to_step / compute_quote

Canonical imports:
    from removals.core.calculator import advance, compute_quote, new_state
    from removals.core.calculator.domain import CalculatorState, CalcStep
"""
from removals.core.calculator.domain import (  # noqa: F401
    CalcStep,
    CalculatorState,
    Tracking,
)
from removals.core.calculator.engine import (  # noqa: F401
    QuoteResult,
    StepOutcome,
    advance,
    compute_quote,
    go_to_step,
    new_state,
    retreat,
    submission_payload,
    validate_manual_override,
)
from removals.core.calculator.errors import (  # noqa: F401
    CalculatorError,
    InapplicableStepError,
    ManualOverrideBoundsError,
    StepValidationError,
)
from removals.core.calculator.escalation import CallbackDecision  # noqa: F401
from removals.core.calculator.steps import progress_percent  # noqa: F401

__all__ = [
    "CalcStep",
    "CalculatorState",
    "Tracking",
    "QuoteResult",
    "StepOutcome",
    "advance",
    "compute_quote",
    "go_to_step",
    "new_state",
    "retreat",
    "submission_payload",
    "validate_manual_override",
    "CalculatorError",
    "InapplicableStepError",
    "ManualOverrideBoundsError",
    "StepValidationError",
    "CallbackDecision",
    "progress_percent",
]
