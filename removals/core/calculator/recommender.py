# removals/core/calculator/recommender.py
"""
Volume & resource recommender.

Turns the size answers (property / office / furniture) plus the
"how full" slider into an estimated volume in cubes, and buckets the
cubes into a van/mover recommendation.  All functions are pure.
"""
from __future__ import annotations

import math
from typing import TYPE_CHECKING

from removals.core.calculator.domain import (
    FurnitureDetails,
    OfficeSize,
    PropertySize,
    ResourcePlan,
    ServiceType,
)
from removals.core.calculator.rates import (
    CUBES_TABLE,
    DEFAULT_SLIDER_POSITION,
    EXTRA_CUBES_FORMULA,
    FURNITURE_ONLY,
    OFFICE_CUBES,
    PACKING_SIZE_THRESHOLDS,
    PROPERTY_CUBES,
    SLIDER_MODIFIERS,
    SMALL_JOB,
)

if TYPE_CHECKING:
    from removals.core.calculator.domain import CalculatorState

__all__ = [
    "round_half_up",
    "cubes_for_property", "cubes_for_office", "cubes_for_furniture",
    "estimate_cubes",
    "recommend_resources", "resources_for_furniture", "recommend_for_state",
    "packing_size_category",
]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return math.floor(value + 0.5)


# ---------------------------------------------------------------------------
# Cubes
# ---------------------------------------------------------------------------

def cubes_for_property(size: PropertySize, slider_position: int | None = None) -> int:
    """Base cubes for *size* scaled by the slider multiplier.

    Positions 2–4 are flat (×1.0); only 1 (×0.9) and 5 (×1.2) move the
    figure beyond the few/average/many category lookup.
    """
    position = slider_position if slider_position is not None else DEFAULT_SLIDER_POSITION
    if position not in SLIDER_MODIFIERS:
        raise ValueError(f"Unknown slider position: {position!r}")

    category, modifier, _label = SLIDER_MODIFIERS[position]
    base = PROPERTY_CUBES[PropertySize(size).value][category]
    return round_half_up(base * modifier)


def cubes_for_office(size: OfficeSize) -> int:
    return OFFICE_CUBES[OfficeSize(size).value]


def cubes_for_furniture(details: FurnitureDetails) -> int:
    """Cubes from item count, scaled up for heavy items and two-person lifts."""
    cubes = max(0, details.item_count) * FURNITURE_ONLY["cubes_per_item"]
    if details.has_heavy_items:
        cubes *= FURNITURE_ONLY["heavy_items_factor"]
    if details.needs_two_person:
        cubes *= FURNITURE_ONLY["two_person_factor"]
    return round_half_up(cubes)


def estimate_cubes(state: "CalculatorState") -> int:
    """Estimated cubes for whatever size answer the state currently holds (0 if none)."""
    if state.service_type == ServiceType.HOME and state.property_size is not None:
        return cubes_for_property(state.property_size, state.slider_position)
    if state.service_type == ServiceType.OFFICE and state.office_size is not None:
        return cubes_for_office(state.office_size)
    if state.service_type == ServiceType.CLEARANCE and state.furniture is not None:
        return cubes_for_furniture(state.furniture)
    return 0


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

def recommend_resources(cubes: float) -> ResourcePlan:
    """
    Bucket *cubes* into a van/mover recommendation.

    - below the small-job threshold -> small-job crew
    - up to the top of the table    -> nearest lower table key
    - above the top of the table    -> base crew plus one mover per extra
      250 cubes and one van per extra 500 cubes (both rounded up)

    Non-decreasing in *cubes* for every field.
    """
    if cubes < SMALL_JOB["below_cubes"]:
        return ResourcePlan(
            vans=int(SMALL_JOB["vans"]),
            movers=int(SMALL_JOB["movers"]),
            load_hours=float(SMALL_JOB["load_hours"]),
        )

    f = EXTRA_CUBES_FORMULA
    if cubes > f["base_cubes"]:
        extra = cubes - f["base_cubes"]
        return ResourcePlan(
            vans=int(f["base_vans"] + math.ceil(extra / 500) * f["vans_per_500"]),
            movers=int(f["base_movers"] + math.ceil(extra / 250) * f["movers_per_250"]),
            load_hours=float(f["base_load_hours"] + (extra / 250) * f["load_hours_per_250"]),
        )

    nearest = next(iter(CUBES_TABLE))
    for key in CUBES_TABLE:
        if key <= cubes:
            nearest = key
        else:
            break
    vans, movers, load_hours = CUBES_TABLE[nearest]
    return ResourcePlan(vans=vans, movers=movers, load_hours=load_hours)


def resources_for_furniture(details: FurnitureDetails) -> ResourcePlan:
    """One van; two movers for heavy or two-person items; load time by item count."""
    load_hours = FURNITURE_ONLY["load_hours_above"]
    for max_items, hours in FURNITURE_ONLY["load_hours_by_items"]:
        if details.item_count <= max_items:
            load_hours = hours
            break

    movers = 2 if (details.needs_two_person or details.has_heavy_items) else 1
    return ResourcePlan(vans=1, movers=movers, load_hours=load_hours)


def recommend_for_state(state: "CalculatorState") -> ResourcePlan | None:
    """Recommendation for the state's size answer, or ``None`` before one is given."""
    if state.service_type == ServiceType.CLEARANCE:
        if state.furniture is None:
            return None
        return resources_for_furniture(state.furniture)

    if state.service_type == ServiceType.HOME and state.property_size is None:
        return None
    if state.service_type == ServiceType.OFFICE and state.office_size is None:
        return None
    if state.service_type is None:
        return None

    return recommend_resources(estimate_cubes(state))


# ---------------------------------------------------------------------------
# Packing size
# ---------------------------------------------------------------------------

def packing_size_category(cubes: float) -> str:
    """``small`` ≤ 500 < ``medium`` ≤ 1000 < ``large`` ≤ 1750 < ``xl``."""
    for category in ("small", "medium", "large"):
        if cubes <= PACKING_SIZE_THRESHOLDS[category]:
            return category
    return "xl"
