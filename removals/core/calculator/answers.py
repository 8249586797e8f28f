# removals/core/calculator/answers.py
"""
Per-step answer validation.

Each handler receives a *working copy* of the state, the raw answer dict
and today's date.  It validates every field first and only writes to the
state when no error was found, so a rejected answer leaves the copy as
it was.  The one exception is a manual override that fails its bounds:
the handler records ``manual_override_pending`` so escalation can see it.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Callable, Optional

from removals.core.calculator.domain import (
    COMPLICATION_NONE,
    Address,
    CalcStep,
    CalculatorState,
    CleaningType,
    Complication,
    Contact,
    DateFlexibility,
    Extras,
    FurnitureDetails,
    OfficeSize,
    PropertySize,
    ResourcePlan,
    RouteEstimate,
    ServiceType,
)
from removals.core.calculator.errors import CalculatorError, StepValidationError
from removals.core.calculator.override import validate_manual_override
from removals.core.calculator.rates import (
    ASSEMBLY_QUANTITY,
    ASSEMBLY_RATES,
    PACKING_TIERS,
    SLIDER_MODIFIERS,
    SPECIALIST_ITEMS,
    STORAGE_SIZES,
)

__all__ = [
    "ANSWER_HANDLERS",
    "apply_answer",
    "PHONE_RE",
    "EMAIL_RE",
]

AnswerHandler = Callable[[CalculatorState, dict, date], list[CalculatorError]]

# UK numbers: +44 or 0 prefix followed by 9–10 digits (whitespace ignored)
PHONE_RE = re.compile(r"^(?:\+44|0)\d{9,10}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ============================================================================
# FIELD HELPERS
# ============================================================================

def _err(step: CalcStep, field: str, message: str) -> StepValidationError:
    return StepValidationError(step=step.value, field=field, message=message)


def _enum_field(
    step: CalcStep, answer: dict, field: str, enum_cls, errors: list,
):
    raw = answer.get(field)
    if raw is None or raw == "":
        errors.append(_err(step, field, f"{field} is required"))
        return None
    try:
        return enum_cls(raw)
    except (TypeError, ValueError):
        allowed = ", ".join(e.value for e in enum_cls)
        errors.append(_err(step, field, f"Invalid {field} {raw!r}; expected one of: {allowed}"))
        return None


def _int_field(
    step: CalcStep,
    answer: dict,
    field: str,
    errors: list,
    *,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
    required: bool = True,
) -> Optional[int]:
    raw = answer.get(field)
    if raw is None:
        if required:
            errors.append(_err(step, field, f"{field} is required"))
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or not isinstance(raw, int):
        errors.append(_err(step, field, f"{field} must be a whole number"))
        return None
    if minimum is not None and raw < minimum:
        errors.append(_err(step, field, f"{field} must be at least {minimum}"))
        return None
    if maximum is not None and raw > maximum:
        errors.append(_err(step, field, f"{field} must be at most {maximum}"))
        return None
    return raw


def _bool_field(
    step: CalcStep, answer: dict, field: str, errors: list, *, required: bool = True, default: bool = False,
) -> bool:
    raw = answer.get(field)
    if raw is None:
        if required:
            errors.append(_err(step, field, f"{field} is required"))
        return default
    if not isinstance(raw, bool):
        errors.append(_err(step, field, f"{field} must be true or false"))
        return default
    return raw


def _text_field(step: CalcStep, answer: dict, field: str, errors: list, label: str) -> str:
    raw = answer.get(field)
    value = raw.strip() if isinstance(raw, str) else ""
    if not value:
        errors.append(_err(step, field, f"Please enter {label}"))
    return value


def _choice(step: CalcStep, field: str, raw: Any, choices: dict, errors: list, label: str) -> Optional[str]:
    """*raw* when it is one of the string keys of *choices*, else None with an error."""
    if not isinstance(raw, str) or raw not in choices:
        errors.append(_err(step, field, f"Unknown {label} {raw!r}"))
        return None
    return raw


def _coordinate(step: CalcStep, answer: dict, field: str, limit: float, errors: list) -> Optional[float]:
    raw = answer.get(field)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not -limit <= raw <= limit:
        errors.append(_err(step, field, f"{field} must be a number between {-limit:g} and {limit:g}"))
        return None
    return float(raw)


def _normalize_postcode(raw: str) -> str:
    return " ".join(raw.upper().split())


# ============================================================================
# STEP HANDLERS
# ============================================================================

def _answer_service_type(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    errors: list[CalculatorError] = []
    service_type = _enum_field(CalcStep.SERVICE_TYPE, answer, "service_type", ServiceType, errors)
    if errors:
        return errors

    if service_type != state.service_type:
        state.property_size = None
        state.office_size = None
        state.furniture = None
        state.slider_position = None
        state.manual_override = None
        state.manual_override_pending = False
    state.service_type = service_type
    return errors


def _answer_size(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    step = CalcStep.SIZE
    errors: list[CalculatorError] = []

    if state.service_type is None:
        return [_err(step, "service_type", "Choose a service type first")]

    if state.service_type == ServiceType.HOME:
        size = _enum_field(step, answer, "property_size", PropertySize, errors)
        if errors:
            return errors
        state.property_size = size
        if size == PropertySize.STUDIO:
            state.slider_position = None
        return errors

    if state.service_type == ServiceType.OFFICE:
        size = _enum_field(step, answer, "office_size", OfficeSize, errors)
        if errors:
            return errors
        state.office_size = size
        return errors

    # Furniture-only / clearance
    item_count = _int_field(step, answer, "item_count", errors, minimum=0)
    needs_two_person = _bool_field(step, answer, "needs_two_person", errors, required=False)
    has_heavy_items = _bool_field(step, answer, "has_heavy_items", errors, required=False)

    raw_items = answer.get("specialist_items") or []
    specialist: list[str] = []
    if not isinstance(raw_items, list):
        errors.append(_err(step, "specialist_items", "specialist_items must be a list"))
    else:
        for raw_tag in raw_items:
            tag = _choice(step, "specialist_items", raw_tag, SPECIALIST_ITEMS, errors, "specialist item")
            if tag is not None and tag not in specialist:
                specialist.append(tag)

    description = answer.get("other_specialist_description")
    description = description.strip() if isinstance(description, str) else None
    if "other" in specialist and not description:
        errors.append(_err(step, "other_specialist_description", "Please describe the specialist item"))

    if errors:
        return errors

    state.furniture = FurnitureDetails(
        item_count=item_count,
        needs_two_person=needs_two_person,
        has_heavy_items=has_heavy_items,
        specialist_items=specialist,
        other_specialist_description=description or None,
    )
    return errors


def _answer_volume(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    errors: list[CalculatorError] = []
    position = _int_field(
        CalcStep.VOLUME, answer, "slider_position", errors,
        minimum=min(SLIDER_MODIFIERS), maximum=max(SLIDER_MODIFIERS),
    )
    if errors:
        return errors
    state.slider_position = position
    return errors


def _answer_recommendation(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    step = CalcStep.RECOMMENDATION
    errors: list[CalculatorError] = []

    if answer.get("accept") is True:
        state.manual_override = None
        state.manual_override_pending = False
        return errors

    vans = _int_field(step, answer, "vans", errors, minimum=1)
    movers = _int_field(step, answer, "movers", errors, minimum=1)
    if errors:
        return errors

    candidate = ResourcePlan(vans=vans, movers=movers)
    bounds_error = validate_manual_override(candidate, state.resource_recommendation)
    if bounds_error is not None:
        state.manual_override_pending = True
        return [bounds_error]

    state.manual_override = candidate
    state.manual_override_pending = False
    return errors


def _answer_date_flexibility(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    errors: list[CalculatorError] = []
    flexibility = _enum_field(CalcStep.DATE_FLEXIBILITY, answer, "date_flexibility", DateFlexibility, errors)
    if errors:
        return errors
    state.date_flexibility = flexibility
    if flexibility == DateFlexibility.UNKNOWN:
        state.selected_date = None
    return errors


def _answer_date_picker(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    step = CalcStep.DATE_PICKER
    raw = answer.get("selected_date")
    if not raw:
        return [_err(step, "selected_date", "Please choose a date")]
    try:
        if isinstance(raw, datetime):
            selected = raw.date()
        elif isinstance(raw, date):
            selected = raw
        else:
            selected = date.fromisoformat(str(raw))
    except ValueError:
        return [_err(step, "selected_date", f"Invalid date {raw!r}; expected YYYY-MM-DD")]
    if selected < today:
        return [_err(step, "selected_date", "The move date cannot be in the past")]

    state.selected_date = selected
    return []


def _answer_complications(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    step = CalcStep.COMPLICATIONS
    raw = answer.get("complications")
    if not isinstance(raw, list) or not raw:
        return [_err(step, "complications", "Select at least one option, or 'none'")]

    if COMPLICATION_NONE in raw:
        state.complications = []
        return []

    tags: list[Complication] = []
    errors: list[CalculatorError] = []
    for value in raw:
        try:
            tag = Complication(value)
        except (TypeError, ValueError):
            errors.append(_err(step, "complications", f"Unknown complication {value!r}"))
            continue
        if tag not in tags:
            tags.append(tag)
    if errors:
        return errors

    state.complications = tags
    return errors


def _answer_property_chain(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    errors: list[CalculatorError] = []
    in_chain = _bool_field(CalcStep.PROPERTY_CHAIN, answer, "property_chain", errors)
    if errors:
        return errors
    state.property_chain = in_chain
    return errors


def _parse_address(step: CalcStep, answer: dict, errors: list) -> Optional[Address]:
    line = _text_field(step, answer, "line", errors, "the first line of the address")
    city = _text_field(step, answer, "city", errors, "the town or city")
    postcode = _text_field(step, answer, "postcode", errors, "the postcode")
    lat = _coordinate(step, answer, "lat", 90, errors)
    lng = _coordinate(step, answer, "lng", 180, errors)
    if (lat is None) != (lng is None) and not errors:
        errors.append(_err(step, "lat" if lat is None else "lng", "lat and lng must be given together"))
    if errors:
        return None
    return Address(
        line=line,
        city=city,
        postcode=_normalize_postcode(postcode),
        lat=lat,
        lng=lng,
    )


def _answer_from_address(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    errors: list[CalculatorError] = []
    address = _parse_address(CalcStep.FROM_ADDRESS, answer, errors)
    if errors:
        return errors
    if address != state.from_address:
        state.route = None
    state.from_address = address
    return errors


def _answer_to_address(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    step = CalcStep.TO_ADDRESS
    errors: list[CalculatorError] = []
    address = _parse_address(step, answer, errors)

    route: Optional[RouteEstimate] = None
    raw_route = answer.get("route")
    if raw_route is not None:
        try:
            route = RouteEstimate(
                total_miles=float(raw_route["total_miles"]),
                drive_time_hours=float(raw_route["drive_time_hours"]),
                customer_miles=float(raw_route.get("customer_miles", 0.0)),
                customer_drive_minutes=float(raw_route.get("customer_drive_minutes", 0.0)),
            )
        except (KeyError, TypeError, ValueError):
            errors.append(_err(step, "route", "route needs numeric total_miles and drive_time_hours"))
        else:
            if route.total_miles < 0 or route.drive_time_hours < 0:
                errors.append(_err(step, "route", "route figures cannot be negative"))

    if errors:
        return errors

    if route is not None:
        state.route = route
    elif address != state.to_address:
        state.route = None
    state.to_address = address
    return errors


def _answer_extras(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    step = CalcStep.EXTRAS
    errors: list[CalculatorError] = []

    packing_tier = answer.get("packing_tier")
    if packing_tier is not None:
        packing_tier = _choice(step, "packing_tier", packing_tier, PACKING_TIERS, errors, "packing option")

    cleaning_rooms = _int_field(step, answer, "cleaning_rooms", errors, minimum=1, required=False)
    cleaning_type = CleaningType.QUICK
    if answer.get("cleaning_type") is not None:
        cleaning_type = _enum_field(step, answer, "cleaning_type", CleaningType, errors) or CleaningType.QUICK

    storage_size = answer.get("storage_size")
    storage_weeks = _int_field(step, answer, "storage_weeks", errors, minimum=1, required=False)
    if storage_size is not None and _choice(
        step, "storage_size", storage_size, STORAGE_SIZES, errors, "storage size",
    ) is None:
        storage_size = None
    elif storage_size is not None and answer.get("storage_weeks") is None:
        errors.append(_err(step, "storage_weeks", "Choose how many weeks of storage"))
    elif storage_size is None and storage_weeks is not None:
        errors.append(_err(step, "storage_size", "Choose a storage size"))

    extras = Extras(
        packing_tier=packing_tier,
        cleaning_rooms=cleaning_rooms,
        cleaning_type=cleaning_type,
        storage_size=storage_size,
        storage_weeks=storage_weeks,
    )

    min_qty, max_qty = ASSEMBLY_QUANTITY
    raw_items = answer.get("assembly_items") or []
    if not isinstance(raw_items, list):
        errors.append(_err(step, "assembly_items", "assembly_items must be a list"))
        raw_items = []
    for raw in raw_items:
        raw_type = raw.get("type") if isinstance(raw, dict) else None
        item_type = _choice(step, "assembly_items", raw_type, ASSEMBLY_RATES, errors, "assembly item")
        if item_type is None:
            continue
        quantity = _int_field(step, raw, "quantity", errors, minimum=min_qty, maximum=max_qty)
        if quantity is not None:
            extras.add_assembly_item(item_type, quantity)

    for item in extras.assembly_items:
        if item.quantity > max_qty:
            errors.append(_err(
                step, "assembly_items", f"At most {max_qty} of {item.type!r} can be assembled",
            ))

    if errors:
        return errors

    state.extras = extras
    return errors


def _answer_contact(state: CalculatorState, answer: dict, today: date) -> list[CalculatorError]:
    step = CalcStep.CONTACT
    errors: list[CalculatorError] = []

    first_name = _text_field(step, answer, "first_name", errors, "your first name")
    last_name = _text_field(step, answer, "last_name", errors, "your last name")

    phone = _text_field(step, answer, "phone", errors, "your phone number")
    if phone and not PHONE_RE.match(re.sub(r"\s", "", phone)):
        errors.append(_err(step, "phone", "Please enter a valid UK phone number"))

    email = _text_field(step, answer, "email", errors, "your email address")
    if email and not EMAIL_RE.match(email):
        errors.append(_err(step, "email", "Please enter a valid email address"))

    marketing = _bool_field(step, answer, "marketing_consent", errors, required=False)
    if answer.get("terms_accepted") is not True:
        errors.append(_err(step, "terms_accepted", "Please accept the terms to continue"))

    if errors:
        return errors

    state.contact = Contact(
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        email=email,
        marketing_consent=marketing,
        terms_accepted=True,
    )
    return errors


ANSWER_HANDLERS: dict[CalcStep, AnswerHandler] = {
    CalcStep.SERVICE_TYPE: _answer_service_type,
    CalcStep.SIZE: _answer_size,
    CalcStep.VOLUME: _answer_volume,
    CalcStep.RECOMMENDATION: _answer_recommendation,
    CalcStep.DATE_FLEXIBILITY: _answer_date_flexibility,
    CalcStep.DATE_PICKER: _answer_date_picker,
    CalcStep.COMPLICATIONS: _answer_complications,
    CalcStep.PROPERTY_CHAIN: _answer_property_chain,
    CalcStep.FROM_ADDRESS: _answer_from_address,
    CalcStep.TO_ADDRESS: _answer_to_address,
    CalcStep.EXTRAS: _answer_extras,
    CalcStep.CONTACT: _answer_contact,
}


def apply_answer(state: CalculatorState, answer: dict[str, Any], today: date) -> list[CalculatorError]:
    """Validate *answer* for ``state.current_step`` and write it into *state*."""
    handler = ANSWER_HANDLERS[state.current_step]
    if not isinstance(answer, dict):
        return [_err(state.current_step, "answer", "answer must be an object")]
    return handler(state, answer, today)
