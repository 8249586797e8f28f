# removals/core/calculator/rates.py
"""
Pricing configuration table for the removal quote calculator.

All tunable values live in ``data/pricing_config.json`` (sub-directory).
This module loads the JSON once at import time and exposes:
- ``RateCard`` — scalar rates (vans, movers, margin, rounding)
- ``PROPERTY_CUBES`` / ``SLIDER_MODIFIERS`` / ``OFFICE_CUBES`` — volume baselines
- ``CUBES_TABLE`` / ``SMALL_JOB`` / ``EXTRA_CUBES_FORMULA`` — resource tiers
- ``FURNITURE_ONLY`` / ``SPECIALIST_ITEMS`` — furniture-only flow
- ``MILEAGE_TIERS`` / ``ACCOMMODATION`` / ``TIME_THRESHOLDS`` — base stage
- ``COMPLICATIONS`` — multiplier factors and resourcing additions
- ``PACKING_TIERS`` / ``CLEANING_PRICES`` / ``STORAGE_SIZES`` / ``ASSEMBLY_RATES`` — extras
- ``THRESHOLDS`` / ``VALIDATION`` — escalation and override bounds

Pure data, no behaviour.  All prices are in **GBP**.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    # Public API
    "RateCard", "DEFAULT_RATES",
    "COMPANY",
    "PROPERTY_CUBES", "SLIDER_MODIFIERS", "DEFAULT_SLIDER_POSITION",
    "OFFICE_CUBES",
    "CUBES_TABLE", "SMALL_JOB", "EXTRA_CUBES_FORMULA",
    "FURNITURE_ONLY", "SPECIALIST_ITEMS",
    "MILEAGE_TIERS", "ACCOMMODATION", "TIME_THRESHOLDS",
    "COMPLICATIONS", "MULTIPLIER_COMPLICATIONS",
    "PACKING_SIZE_THRESHOLDS", "PACKING_TIERS",
    "CLEANING_PRICES", "CLEANING_TIERS", "CLEANING_ROOMS",
    "STORAGE_SIZES", "STORAGE",
    "ASSEMBLY_RATES", "ASSEMBLY_QUANTITY",
    "THRESHOLDS", "VALIDATION",
    # Private (used by tests)
    "_RAW_CONFIG", "_CONFIG_PATH", "_load_pricing_config",
]


# ---------------------------------------------------------------------------
# Load JSON config (once at import time)
# ---------------------------------------------------------------------------

_CONFIG_PATH = Path(__file__).parent / "data" / "pricing_config.json"


def _load_pricing_config() -> dict:
    """Load pricing configuration from JSON file."""
    with open(_CONFIG_PATH, "r", encoding="utf-8") as f:
        return json.load(f)


_RAW_CONFIG = _load_pricing_config()


# ---------------------------------------------------------------------------
# Scalar rates (from JSON)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RateCard:
    """Day rates, margin and rounding used by the base and multiply stages."""
    van_half_day: float = _RAW_CONFIG["van_rates"]["half_day"]
    van_full_day: float = _RAW_CONFIG["van_rates"]["full_day"]
    mover_first_two: float = _RAW_CONFIG["mover_rates"]["first_two"]
    mover_additional: float = _RAW_CONFIG["mover_rates"]["additional"]
    profit_margin: float = _RAW_CONFIG["profit_margin"]
    price_rounding: int = _RAW_CONFIG["price_rounding"]
    quote_valid_days: int = _RAW_CONFIG["validation"]["quote_valid_days"]


DEFAULT_RATES = RateCard()

COMPANY: dict[str, str] = dict(_RAW_CONFIG["company"])


# ---------------------------------------------------------------------------
# Volume baselines: cubes per property / office size
# ---------------------------------------------------------------------------

PROPERTY_CUBES: dict[str, dict[str, int]] = {
    size: dict(by_category) for size, by_category in _RAW_CONFIG["property_cubes"].items()
}

# Slider position -> (belongings category, multiplier, label)
SLIDER_MODIFIERS: dict[int, tuple[str, float, str]] = {
    int(pos): (v["category"], float(v["modifier"]), v["label"])
    for pos, v in _RAW_CONFIG["slider_modifiers"].items()
}

DEFAULT_SLIDER_POSITION: int = int(_RAW_CONFIG["default_slider_position"])

OFFICE_CUBES: dict[str, int] = {
    size: int(v["cubes"]) for size, v in _RAW_CONFIG["office_cubes"].items()
}


# ---------------------------------------------------------------------------
# Resource tiers: cubes -> (vans, movers, load hours)
# ---------------------------------------------------------------------------

# Sorted ascending by cubes key; lookups use the nearest lower key.
CUBES_TABLE: dict[int, tuple[int, int, float]] = {
    int(cubes): (int(v["vans"]), int(v["movers"]), float(v["load_hours"]))
    for cubes, v in sorted(_RAW_CONFIG["cubes_table"].items(), key=lambda kv: int(kv[0]))
}

SMALL_JOB: dict[str, float] = dict(_RAW_CONFIG["small_job"])

EXTRA_CUBES_FORMULA: dict[str, float] = dict(_RAW_CONFIG["extra_cubes_formula"])


# ---------------------------------------------------------------------------
# Furniture-only flow
# ---------------------------------------------------------------------------

FURNITURE_ONLY: dict[str, object] = {
    "cubes_per_item": float(_RAW_CONFIG["furniture_only"]["cubes_per_item"]),
    "heavy_items_factor": float(_RAW_CONFIG["furniture_only"]["heavy_items_factor"]),
    "two_person_factor": float(_RAW_CONFIG["furniture_only"]["two_person_factor"]),
    # (max item count, load hours), ascending
    "load_hours_by_items": sorted(
        (int(k), float(v))
        for k, v in _RAW_CONFIG["furniture_only"]["load_hours_by_items"].items()
    ),
    "load_hours_above": float(_RAW_CONFIG["furniture_only"]["load_hours_above"]),
}

SPECIALIST_ITEMS: dict[str, str] = dict(_RAW_CONFIG["furniture_only"]["specialist_items"])


# ---------------------------------------------------------------------------
# Base stage: mileage, accommodation, duration
# ---------------------------------------------------------------------------

# (upper bound in miles or None for "beyond", rate per mile), ascending
MILEAGE_TIERS: list[tuple[float | None, float]] = [
    (tier["max_miles"], float(tier["rate"])) for tier in _RAW_CONFIG["mileage_rates"]
]

ACCOMMODATION: dict[str, float] = dict(_RAW_CONFIG["accommodation"])

TIME_THRESHOLDS: dict[str, float] = dict(_RAW_CONFIG["time_thresholds"])


# ---------------------------------------------------------------------------
# Complications
# ---------------------------------------------------------------------------

COMPLICATIONS: dict[str, dict] = {
    tag: dict(cfg) for tag, cfg in _RAW_CONFIG["complications"].items()
}

# Tags priced as a percentage multiplier (the rest change resourcing instead)
MULTIPLIER_COMPLICATIONS: frozenset[str] = frozenset(
    tag for tag, cfg in COMPLICATIONS.items() if "factor" in cfg
)


# ---------------------------------------------------------------------------
# Extras: packing, cleaning, storage, assembly
# ---------------------------------------------------------------------------

PACKING_SIZE_THRESHOLDS: dict[str, int] = dict(_RAW_CONFIG["packing_size_thresholds"])

PACKING_TIERS: dict[str, dict] = {
    tier: dict(cfg) for tier, cfg in _RAW_CONFIG["packing_tiers"].items()
}

CLEANING_PRICES: dict[int, float] = {
    int(rooms): float(price) for rooms, price in _RAW_CONFIG["cleaning_prices"].items()
}

CLEANING_TIERS: dict[str, float] = {
    tier: float(cfg["multiplier"]) for tier, cfg in _RAW_CONFIG["cleaning_tiers"].items()
}

CLEANING_ROOMS: tuple[int, int] = (
    int(_RAW_CONFIG["cleaning_rooms"]["min"]),
    int(_RAW_CONFIG["cleaning_rooms"]["max"]),
)

STORAGE_SIZES: dict[str, float] = {
    size: float(cfg["weekly_price"]) for size, cfg in _RAW_CONFIG["storage_sizes"].items()
}

STORAGE: dict[str, object] = dict(_RAW_CONFIG["storage"])

ASSEMBLY_RATES: dict[str, float] = {
    tier: float(cfg["price"]) for tier, cfg in _RAW_CONFIG["assembly"].items()
}

ASSEMBLY_QUANTITY: tuple[int, int] = (
    int(_RAW_CONFIG["assembly_quantity"]["min"]),
    int(_RAW_CONFIG["assembly_quantity"]["max"]),
)


# ---------------------------------------------------------------------------
# Escalation thresholds and override bounds
# ---------------------------------------------------------------------------

THRESHOLDS: dict[str, float] = dict(_RAW_CONFIG["thresholds"])

VALIDATION: dict[str, int] = dict(_RAW_CONFIG["validation"])
