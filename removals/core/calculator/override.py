# removals/core/calculator/override.py
"""Manual van/mover override validation."""
from __future__ import annotations

from removals.core.calculator.domain import ResourcePlan
from removals.core.calculator.errors import ManualOverrideBoundsError
from removals.core.calculator.rates import VALIDATION

__all__ = [
    "override_bounds",
    "validate_manual_override",
    "recommendation_diff_message",
]


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


def override_bounds(vans: int) -> tuple[int, int]:
    """(min movers, max movers) allowed for *vans*."""
    return vans * VALIDATION["min_movers_per_van"], vans * VALIDATION["max_movers_per_van"]


def validate_manual_override(
    candidate: ResourcePlan,
    recommendation: ResourcePlan | None = None,
) -> ManualOverrideBoundsError | None:
    """
    Check ``vans ≤ movers ≤ 3 × vans`` for a user-chosen crew.

    Every van needs a driver and holds at most three people.  The
    recommendation is accepted for interface symmetry; the bounds do not
    depend on it.

    Returns ``None`` when valid, otherwise the violated bound.
    """
    vans, movers = candidate.vans, candidate.movers
    min_movers, max_movers = override_bounds(vans)

    if movers < min_movers:
        return ManualOverrideBoundsError(
            kind="min",
            bound_value=min_movers,
            vans=vans,
            movers=movers,
            message=(
                f"You need at least {_plural(min_movers, 'mover')} for "
                f"{_plural(vans, 'van')} - each van needs a driver."
            ),
        )

    if movers > max_movers:
        return ManualOverrideBoundsError(
            kind="max",
            bound_value=max_movers,
            vans=vans,
            movers=movers,
            message=(
                f"Maximum {max_movers} movers for {_plural(vans, 'van')} "
                f"- each van holds up to {VALIDATION['max_movers_per_van']} people."
            ),
        )

    return None


def recommendation_diff_message(recommended: ResourcePlan, manual: ResourcePlan) -> str | None:
    """Note shown when the customer picks a crew different from the recommendation."""
    if recommended.vans == manual.vans and recommended.movers == manual.movers:
        return None
    return (
        f"Based on your property, we'd typically recommend "
        f"{_plural(recommended.vans, 'van')} and {_plural(recommended.movers, 'mover')}. "
        f"You've selected {_plural(manual.vans, 'van')} and {_plural(manual.movers, 'mover')}."
    )
