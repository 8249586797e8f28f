# removals/core/calculator/pricing.py
"""
Complication & extras pricing for the removal quote calculator.

The price is built by three explicitly ordered stages:

1. **Base stage**  — vans, movers, mileage and accommodation for the
   effective crew (recommendation or manual override, plus the ``plants``
   resourcing addition) over the service duration.
2. **Multiply stage** — compounding complication factors (``1.07 ^ n``)
   then the profit margin factor, each recorded as an adjustment line.
3. **Add stage** — packing, cleaning, storage and assembly extras, added
   after every multiplier has been applied.

Everything is computed at full precision.  ``total`` is the exact sum of
the line items; only ``display_total`` is rounded (nearest £10).
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable

from removals.core.calculator.domain import (
    AssemblyItem,
    CleaningType,
    Complication,
    Extras,
    ResourcePlan,
    RouteEstimate,
)
from removals.core.calculator.rates import (
    ACCOMMODATION,
    ASSEMBLY_RATES,
    CLEANING_PRICES,
    CLEANING_ROOMS,
    CLEANING_TIERS,
    COMPANY,
    COMPLICATIONS,
    DEFAULT_RATES,
    MILEAGE_TIERS,
    MULTIPLIER_COMPLICATIONS,
    PACKING_TIERS,
    STORAGE,
    STORAGE_SIZES,
    THRESHOLDS,
    TIME_THRESHOLDS,
    RateCard,
)
from removals.core.calculator.recommender import packing_size_category

__all__ = [
    # Public API
    "LineItem", "ServiceDuration", "PriceBreakdown",
    "STAGE_BASE", "STAGE_MULTIPLY", "STAGE_ADD",
    "mover_day_cost", "mileage_cost", "accommodation_cost", "service_duration",
    "complication_multiplier", "apply_resourcing_complications",
    "packing_cost", "cleaning_cost", "storage_cost", "assembly_cost",
    "round_price",
    "base_stage", "multiply_stage", "add_stage",
    "price_job",
]

STAGE_BASE = "base"
STAGE_MULTIPLY = "multiply"
STAGE_ADD = "add"


@dataclass(frozen=True)
class LineItem:
    code: str
    label: str
    amount: float
    stage: str

    def to_dict(self) -> dict:
        return {"code": self.code, "label": self.label, "amount": self.amount, "stage": self.stage}


@dataclass(frozen=True)
class ServiceDuration:
    days: float
    is_half_day: bool
    label: str


@dataclass
class PriceBreakdown:
    line_items: list[LineItem]
    resources: ResourcePlan
    cubes: int
    duration: ServiceDuration
    total_job_hours: float
    complication_multiplier: float
    margin_multiplier: float
    route_available: bool
    multi_day_warning: bool
    valid_until: date
    currency: str = COMPANY["currency"]
    currency_symbol: str = COMPANY["currency_symbol"]

    def _stage_total(self, stage: str) -> float:
        return sum(item.amount for item in self.line_items if item.stage == stage)

    @property
    def base_cost(self) -> float:
        return self._stage_total(STAGE_BASE)

    @property
    def extras_cost(self) -> float:
        return self._stage_total(STAGE_ADD)

    @property
    def total(self) -> float:
        return sum(item.amount for item in self.line_items)

    @property
    def display_total(self) -> int:
        return round_price(self.total)

    def to_dict(self) -> dict:
        return {
            "line_items": [item.to_dict() for item in self.line_items],
            "base_cost": self.base_cost,
            "extras_cost": self.extras_cost,
            "complication_multiplier": self.complication_multiplier,
            "margin_multiplier": self.margin_multiplier,
            "total": self.total,
            "display_total": self.display_total,
            "currency": self.currency,
            "currency_symbol": self.currency_symbol,
            "vans": self.resources.vans,
            "movers": self.resources.movers,
            "load_hours": self.resources.load_hours,
            "cubes": self.cubes,
            "total_job_hours": self.total_job_hours,
            "service_days": self.duration.days,
            "is_half_day": self.duration.is_half_day,
            "service_duration": self.duration.label,
            "route_available": self.route_available,
            "multi_day_warning": self.multi_day_warning,
            "valid_until": self.valid_until.isoformat(),
        }


# ---------------------------------------------------------------------------
# Base stage helpers
# ---------------------------------------------------------------------------

def mover_day_cost(movers: int, rates: RateCard = DEFAULT_RATES) -> float:
    """Day cost for *movers*: the first two at one rate, the rest at another."""
    if movers <= 0:
        return 0.0
    if movers <= 2:
        return movers * rates.mover_first_two
    return 2 * rates.mover_first_two + (movers - 2) * rates.mover_additional


def mileage_cost(total_miles: float) -> float:
    """Tiered mileage: each band's miles are charged at that band's rate."""
    cost = 0.0
    remaining = max(0.0, total_miles)
    previous_max = 0.0

    for max_miles, rate in MILEAGE_TIERS:
        if remaining <= 0:
            break
        band = remaining if max_miles is None else min(remaining, max_miles - previous_max)
        if band > 0:
            cost += band * rate
            remaining -= band
        if max_miles is not None:
            previous_max = max_miles

    return cost


def accommodation_cost(crew: int, drive_time_hours: float) -> float:
    """Overnight rooms when the drive exceeds the trigger (two movers per room)."""
    trigger = ACCOMMODATION["trigger_hours"]
    if drive_time_hours <= trigger:
        return 0.0
    nights = math.ceil(drive_time_hours / trigger) - 1
    rooms = math.ceil(crew / ACCOMMODATION["people_per_room"])
    return float(rooms * ACCOMMODATION["per_room"] * nights)


def service_duration(total_job_hours: float, property_chain: bool = False) -> ServiceDuration:
    """Half day / full day / multi-day bucket for the job; a chain forces a full day."""
    t = TIME_THRESHOLDS

    if property_chain and total_job_hours <= t["half_day"]:
        return ServiceDuration(days=1, is_half_day=False, label="Full Day")
    if total_job_hours <= t["half_day"]:
        return ServiceDuration(days=0.5, is_half_day=True, label="Half Day")
    if total_job_hours <= t["full_day"]:
        return ServiceDuration(days=1, is_half_day=False, label="Full Day")
    if total_job_hours <= t["two_days"]:
        return ServiceDuration(days=2, is_half_day=False, label="2 Days")
    if total_job_hours <= t["three_days"]:
        return ServiceDuration(days=3, is_half_day=False, label="3 Days")

    days = math.ceil(total_job_hours / t["hours_per_day"])
    return ServiceDuration(days=days, is_half_day=False, label=f"{days} Days")


def apply_resourcing_complications(
    plan: ResourcePlan, complications: Iterable[Complication],
) -> ResourcePlan:
    """Add the vans/movers that resourcing complications (``plants``) require."""
    vans, movers = plan.vans, plan.movers
    for tag in complications:
        cfg = COMPLICATIONS[Complication(tag).value]
        vans += int(cfg.get("add_vans", 0))
        movers += int(cfg.get("add_movers", 0))
    return ResourcePlan(vans=vans, movers=movers, load_hours=plan.load_hours)


def base_stage(
    *,
    plan: ResourcePlan,
    duration: ServiceDuration,
    route: RouteEstimate | None,
    rates: RateCard = DEFAULT_RATES,
) -> list[LineItem]:
    """Vans, movers, mileage and accommodation line items."""
    if duration.is_half_day:
        vans_cost = plan.vans * rates.van_half_day
        movers_cost = mover_day_cost(plan.movers, rates) * 0.5
    else:
        vans_cost = plan.vans * rates.van_full_day * duration.days
        movers_cost = mover_day_cost(plan.movers, rates) * duration.days

    miles = route.total_miles if route else 0.0
    drive_hours = route.drive_time_hours if route else 0.0

    return [
        LineItem("vans", f"{plan.vans} van(s), {duration.label}", float(vans_cost), STAGE_BASE),
        LineItem("movers", f"{plan.movers} mover(s), {duration.label}", float(movers_cost), STAGE_BASE),
        LineItem("mileage", f"Mileage ({miles:.1f} mi)", mileage_cost(miles), STAGE_BASE),
        LineItem("accommodation", "Crew accommodation", accommodation_cost(plan.movers, drive_hours), STAGE_BASE),
    ]


# ---------------------------------------------------------------------------
# Multiply stage
# ---------------------------------------------------------------------------

def complication_multiplier(complications: Iterable[Complication]) -> float:
    """Compounding factor: ``1.07 ** n`` for the percentage complications."""
    multiplier = 1.0
    for tag in complications:
        value = Complication(tag).value
        if value in MULTIPLIER_COMPLICATIONS:
            multiplier *= float(COMPLICATIONS[value]["factor"])
    return multiplier


def multiply_stage(
    base_total: float,
    *,
    complications_factor: float,
    rates: RateCard = DEFAULT_RATES,
) -> tuple[list[LineItem], float]:
    """Adjustment lines for the complication and margin factors.

    Returns the lines and the margin factor.  ``base_total`` plus the
    lines equals ``base_total × complications_factor × margin_factor``.
    """
    items: list[LineItem] = []
    running = base_total

    if complications_factor != 1.0:
        delta = running * (complications_factor - 1.0)
        items.append(LineItem(
            "complications",
            f"Complications (×{complications_factor:.4f})",
            delta,
            STAGE_MULTIPLY,
        ))
        running += delta

    margin_factor = 1.0 / (1.0 - rates.profit_margin)
    items.append(LineItem("margin", "Service & overheads", running * (margin_factor - 1.0), STAGE_MULTIPLY))
    return items, margin_factor


# ---------------------------------------------------------------------------
# Add stage: extras
# ---------------------------------------------------------------------------

def packing_cost(tier: str, cubes: float) -> float:
    cfg = PACKING_TIERS[tier]
    if "flat_price" in cfg:
        return float(cfg["flat_price"])
    return float(cfg["price_by_size"][packing_size_category(cubes)])


def cleaning_cost(rooms: int, cleaning_type: CleaningType = CleaningType.QUICK) -> float:
    """Flat price by room count (clamped to 1–6) times the clean-type multiplier."""
    low, high = CLEANING_ROOMS
    clamped = min(max(rooms, low), high)
    return CLEANING_PRICES[clamped] * CLEANING_TIERS[CleaningType(cleaning_type).value]


def storage_cost(size: str, weeks: int) -> float:
    """``min(w, 8) × rate × 0.5 + max(0, w − 8) × rate``."""
    rate = STORAGE_SIZES[size]
    discounted = STORAGE["discounted_weeks"]
    return (
        min(weeks, discounted) * rate * STORAGE["discount_rate"]
        + max(0, weeks - discounted) * rate
    )


def assembly_cost(items: Iterable[AssemblyItem]) -> float:
    return sum(ASSEMBLY_RATES[item.type] * item.quantity for item in items)


def add_stage(extras: Extras, cubes: float) -> list[LineItem]:
    items: list[LineItem] = []

    if extras.packing_tier:
        items.append(LineItem(
            "packing",
            PACKING_TIERS[extras.packing_tier].get("label", extras.packing_tier),
            packing_cost(extras.packing_tier, cubes),
            STAGE_ADD,
        ))

    if extras.cleaning_rooms:
        items.append(LineItem(
            "cleaning",
            f"{CleaningType(extras.cleaning_type).value.title()} clean, {extras.cleaning_rooms} room(s)",
            cleaning_cost(extras.cleaning_rooms, extras.cleaning_type),
            STAGE_ADD,
        ))

    if extras.storage_size and extras.storage_weeks:
        items.append(LineItem(
            "storage",
            f"Storage ({extras.storage_size}, {extras.storage_weeks} week(s))",
            storage_cost(extras.storage_size, extras.storage_weeks),
            STAGE_ADD,
        ))

    for item in extras.assembly_items:
        items.append(LineItem(
            f"assembly:{item.type}",
            f"Assembly ({item.type} × {item.quantity})",
            assembly_cost([item]),
            STAGE_ADD,
        ))

    return items


# ---------------------------------------------------------------------------
# Rounding
# ---------------------------------------------------------------------------

def round_price(price: float, step: int = DEFAULT_RATES.price_rounding) -> int:
    """Round half-up to the nearest *step* (display only)."""
    return int(math.floor(price / step + 0.5) * step)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def price_job(
    *,
    plan: ResourcePlan,
    cubes: int,
    complications: Iterable[Complication] = (),
    property_chain: bool = False,
    route: RouteEstimate | None = None,
    extras: Extras | None = None,
    quoted_on: date | None = None,
    rates: RateCard = DEFAULT_RATES,
) -> PriceBreakdown:
    """
    Price a job from its crew, volume and answers.

    1. **Resourcing** — ``plants`` adds a van and a mover to *plan*.
    2. **Duration** — load hours + drive time, bucketed into half/full/multi-day.
    3. **Base stage** — vans, movers, mileage, accommodation.
    4. **Multiply stage** — complications factor, then margin factor.
    5. **Add stage** — extras at their listed prices.

    Returns a :class:`PriceBreakdown` whose ``total`` equals the sum of
    its line items and is never below ``base_cost``.
    """
    complications = list(complications)
    effective = apply_resourcing_complications(plan, complications)

    drive_hours = route.drive_time_hours if route else 0.0
    total_job_hours = effective.load_hours + drive_hours
    duration = service_duration(total_job_hours, property_chain)

    line_items = base_stage(plan=effective, duration=duration, route=route, rates=rates)
    base_total = sum(item.amount for item in line_items)

    factor = complication_multiplier(complications)
    multiply_items, margin_factor = multiply_stage(base_total, complications_factor=factor, rates=rates)
    line_items.extend(multiply_items)

    line_items.extend(add_stage(extras or Extras(), cubes))

    warning_hours = THRESHOLDS["multi_day_warning_hours"]
    quoted_on = quoted_on or date.today()

    return PriceBreakdown(
        line_items=line_items,
        resources=effective,
        cubes=cubes,
        duration=duration,
        total_job_hours=total_job_hours,
        complication_multiplier=factor,
        margin_multiplier=margin_factor,
        route_available=route is not None,
        multi_day_warning=warning_hours < total_job_hours <= TIME_THRESHOLDS["full_day"],
        valid_until=quoted_on + timedelta(days=rates.quote_valid_days),
    )
