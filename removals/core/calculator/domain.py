# removals/core/calculator/domain.py
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


# ============================================================================
# STEP IDENTIFIERS
# ============================================================================

class CalcStep(str, Enum):
    """Calculator steps in display order.

    ``QUOTE`` and ``CALLBACK`` are the two terminal steps; exactly one of
    them is applicable for a given answer set.
    """
    SERVICE_TYPE = "service_type"
    SIZE = "size"
    VOLUME = "volume"
    RECOMMENDATION = "recommendation"
    DATE_FLEXIBILITY = "date_flexibility"
    DATE_PICKER = "date_picker"
    COMPLICATIONS = "complications"
    PROPERTY_CHAIN = "property_chain"
    FROM_ADDRESS = "from_address"
    TO_ADDRESS = "to_address"
    EXTRAS = "extras"
    CONTACT = "contact"
    QUOTE = "quote"
    CALLBACK = "callback"


STEP_ORDER: tuple[CalcStep, ...] = tuple(CalcStep)
TERMINAL_STEPS: frozenset[CalcStep] = frozenset({CalcStep.QUOTE, CalcStep.CALLBACK})


# ============================================================================
# ANSWER ENUMS
# ============================================================================

class ServiceType(str, Enum):
    HOME = "home"
    OFFICE = "office"
    CLEARANCE = "clearance"  # furniture-only / single items


class PropertySize(str, Enum):
    STUDIO = "studio"
    ONE_BED = "1bed"
    TWO_BED = "2bed"
    THREE_BED_SMALL = "3bed-small"
    THREE_BED_LARGE = "3bed-large"
    FOUR_BED = "4bed"
    FIVE_BED = "5bed"
    FIVE_BED_PLUS = "5bed-plus"


class OfficeSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class DateFlexibility(str, Enum):
    FIXED = "fixed"
    FLEXIBLE = "flexible"
    UNKNOWN = "unknown"


class Complication(str, Enum):
    LARGE_FRAGILE = "largeFragile"
    STAIRS = "stairs"
    RESTRICTED_ACCESS = "restrictedAccess"
    PLANTS = "plants"


# Answer token that clears every complication; never stored in state.
COMPLICATION_NONE = "none"


class CleaningType(str, Enum):
    QUICK = "quick"
    DEEP = "deep"


# ============================================================================
# VALUE OBJECTS
# ============================================================================

@dataclass
class Address:
    line: str
    city: str
    postcode: str
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def formatted(self) -> str:
        return f"{self.line}, {self.city}, {self.postcode}"


@dataclass
class RouteEstimate:
    """Mileage figures supplied by the route provider.

    ``total_miles`` covers depot -> from -> to -> depot and is what gets
    priced; the ``customer_*`` fields are the from -> to leg for display.
    """
    total_miles: float
    drive_time_hours: float
    customer_miles: float = 0.0
    customer_drive_minutes: float = 0.0


@dataclass
class FurnitureDetails:
    item_count: int = 0
    needs_two_person: bool = False
    has_heavy_items: bool = False
    specialist_items: list[str] = field(default_factory=list)
    other_specialist_description: Optional[str] = None

    @property
    def has_specialist(self) -> bool:
        return bool(self.specialist_items)


@dataclass(frozen=True)
class ResourcePlan:
    vans: int
    movers: int
    load_hours: float = 0.0


@dataclass
class AssemblyItem:
    type: str
    quantity: int


@dataclass
class Extras:
    packing_tier: Optional[str] = None
    cleaning_rooms: Optional[int] = None
    cleaning_type: CleaningType = CleaningType.QUICK
    storage_size: Optional[str] = None
    storage_weeks: Optional[int] = None
    assembly_items: list[AssemblyItem] = field(default_factory=list)

    def add_assembly_item(self, item_type: str, quantity: int) -> None:
        """Add *quantity* of *item_type*, merging into an existing entry."""
        for existing in self.assembly_items:
            if existing.type == item_type:
                existing.quantity += quantity
                return
        self.assembly_items.append(AssemblyItem(type=item_type, quantity=quantity))


@dataclass
class Contact:
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    email: str = ""
    marketing_consent: bool = False
    terms_accepted: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Tracking:
    """Attribution captured when the session starts."""
    session_id: Optional[str] = None
    gclid: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    landing_page: Optional[str] = None
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================================================
# CALCULATOR STATE
# ============================================================================

@dataclass
class CalculatorState:
    """
    Answers collected so far for one quote session.

    Only user answers (plus the route figures from the mileage provider)
    are stored.  Cubes, the resource recommendation and the callback
    decision are properties recomputed on every read, so they can never
    be stale relative to the answers.
    """
    current_step: CalcStep = CalcStep.SERVICE_TYPE

    service_type: Optional[ServiceType] = None
    property_size: Optional[PropertySize] = None
    office_size: Optional[OfficeSize] = None
    furniture: Optional[FurnitureDetails] = None
    slider_position: Optional[int] = None

    manual_override: Optional[ResourcePlan] = None
    manual_override_pending: bool = False

    date_flexibility: Optional[DateFlexibility] = None
    selected_date: Optional[date] = None

    # None = unanswered, [] = "none of these"
    complications: Optional[list[Complication]] = None
    property_chain: Optional[bool] = None

    from_address: Optional[Address] = None
    to_address: Optional[Address] = None
    route: Optional[RouteEstimate] = None

    extras: Extras = field(default_factory=Extras)
    contact: Contact = field(default_factory=Contact)
    tracking: Tracking = field(default_factory=Tracking)

    # --- derived (never stored) -------------------------------------------

    @property
    def is_furniture_only(self) -> bool:
        return self.service_type == ServiceType.CLEARANCE

    @property
    def has_specialist_items(self) -> bool:
        return self.is_furniture_only and self.furniture is not None and self.furniture.has_specialist

    @property
    def estimated_cubes(self) -> float:
        from removals.core.calculator.recommender import estimate_cubes
        return estimate_cubes(self)

    @property
    def resource_recommendation(self) -> Optional[ResourcePlan]:
        from removals.core.calculator.recommender import recommend_for_state
        return recommend_for_state(self)

    @property
    def callback_decision(self):
        from removals.core.calculator.escalation import decide_callback
        return decide_callback(self)

    @property
    def callback_required(self) -> bool:
        return self.callback_decision.required

    @property
    def active_complications(self) -> list[Complication]:
        return list(self.complications or [])

    # --- serialization ----------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict of every stored field (derived fields excluded)."""
        return _to_jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CalculatorState":
        furniture = data.get("furniture")
        override = data.get("manual_override")
        complications = data.get("complications")
        extras = dict(data.get("extras") or {})
        tracking = dict(data.get("tracking") or {})

        return cls(
            current_step=CalcStep(data.get("current_step", CalcStep.SERVICE_TYPE.value)),
            service_type=_enum_or_none(ServiceType, data.get("service_type")),
            property_size=_enum_or_none(PropertySize, data.get("property_size")),
            office_size=_enum_or_none(OfficeSize, data.get("office_size")),
            furniture=FurnitureDetails(**furniture) if furniture is not None else None,
            slider_position=data.get("slider_position"),
            manual_override=ResourcePlan(**override) if override is not None else None,
            manual_override_pending=bool(data.get("manual_override_pending", False)),
            date_flexibility=_enum_or_none(DateFlexibility, data.get("date_flexibility")),
            selected_date=_parse_date(data.get("selected_date")),
            complications=(
                [Complication(c) for c in complications] if complications is not None else None
            ),
            property_chain=data.get("property_chain"),
            from_address=_address_or_none(data.get("from_address")),
            to_address=_address_or_none(data.get("to_address")),
            route=RouteEstimate(**data["route"]) if data.get("route") is not None else None,
            extras=Extras(
                packing_tier=extras.get("packing_tier"),
                cleaning_rooms=extras.get("cleaning_rooms"),
                cleaning_type=CleaningType(extras.get("cleaning_type", CleaningType.QUICK.value)),
                storage_size=extras.get("storage_size"),
                storage_weeks=extras.get("storage_weeks"),
                assembly_items=[AssemblyItem(**i) for i in extras.get("assembly_items", [])],
            ),
            contact=Contact(**(data.get("contact") or {})),
            tracking=Tracking(
                session_id=tracking.get("session_id"),
                gclid=tracking.get("gclid"),
                utm_source=tracking.get("utm_source"),
                utm_medium=tracking.get("utm_medium"),
                utm_campaign=tracking.get("utm_campaign"),
                landing_page=tracking.get("landing_page"),
                started_at=_parse_datetime(tracking.get("started_at")),
                updated_at=_parse_datetime(tracking.get("updated_at")),
            ),
        )


# ============================================================================
# SERIALIZATION HELPERS
# ============================================================================

def _to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def _enum_or_none(enum_cls, raw):
    return enum_cls(raw) if raw is not None else None


def _address_or_none(raw: dict | None) -> Address | None:
    return Address(**raw) if raw is not None else None


def _parse_date(raw: str | None) -> date | None:
    return date.fromisoformat(raw) if raw else None


def _parse_datetime(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None
