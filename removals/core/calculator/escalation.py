# removals/core/calculator/escalation.py
"""Callback escalation: decide when a case goes to a human instead of an auto-quote."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from removals.core.calculator.rates import THRESHOLDS

if TYPE_CHECKING:
    from removals.core.calculator.domain import CalculatorState

__all__ = [
    "CallbackDecision",
    "decide_callback",
    "REASON_LARGE_PROPERTY", "REASON_SPECIALIST_ITEMS", "REASON_UNRESOLVED_OVERRIDE",
]

REASON_LARGE_PROPERTY = "large_property"
REASON_SPECIALIST_ITEMS = "specialist_items"
REASON_UNRESOLVED_OVERRIDE = "unresolved_override"


@dataclass(frozen=True)
class CallbackDecision:
    required: bool
    reasons: tuple[str, ...] = field(default_factory=tuple)

    @property
    def primary_reason(self) -> str | None:
        return self.reasons[0] if self.reasons else None

    def to_dict(self) -> dict:
        return {"required": self.required, "reasons": list(self.reasons)}


def decide_callback(state: "CalculatorState") -> CallbackDecision:
    """
    Escalate when any of:

    1. estimated cubes exceed the callback threshold;
    2. a specialist furniture item is selected (furniture-only flow);
    3. a manual override was attempted but never resolved to a valid crew.
    """
    reasons: list[str] = []

    if state.has_specialist_items:
        reasons.append(REASON_SPECIALIST_ITEMS)

    if state.estimated_cubes > THRESHOLDS["callback_cubes"]:
        reasons.append(REASON_LARGE_PROPERTY)

    if state.manual_override_pending:
        reasons.append(REASON_UNRESOLVED_OVERRIDE)

    return CallbackDecision(required=bool(reasons), reasons=tuple(reasons))
