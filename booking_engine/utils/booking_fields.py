# booking_engine/utils/booking_fields.py
"""
Negotiable booking fields and their text codec.

Proposals carry old/new values as text. Each negotiable field declares a
kind; raw text is parsed into the column's Python type and serialized back to
a canonical text form, so that "100" and "100.00" (or "" and null) compare
equal when checking a proposal's old_value against the stored value.
"""
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from booking_engine.core.exceptions import ValidationError
from booking_engine.schemas.booking import MAX_AMOUNT, MAX_COUNT, PricingMode

TEXT = "text"
REQUIRED_TEXT = "required_text"
DATE = "date"
MONEY = "money"
COUNT = "count"
PERCENTAGE = "percentage"
LATITUDE = "latitude"
LONGITUDE = "longitude"
COORDINATES = "coordinates"
FLAG = "flag"
JSON_OBJECT = "json_object"
JSON_LIST = "json_list"

# Fields either party may change while the booking is negotiable.
# Identity, parties, workflow flags and lifecycle markers are not listed and
# therefore cannot be touched through proposals or field updates.
NEGOTIABLE_FIELDS = {
    "title": REQUIRED_TEXT,
    "description": TEXT,
    "event_date": DATE,
    "end_date": DATE,
    "time": TEXT,
    "start_time": TEXT,
    "end_time": TEXT,
    "venue": TEXT,
    "address": TEXT,
    "latitude": LATITUDE,
    "longitude": LONGITUDE,
    "coordinates": COORDINATES,
    "audience_estimate": COUNT,
    "ticket_price": MONEY,
    "artist_fee": MONEY,
    "door_deal": FLAG,
    "door_percentage": PERCENTAGE,
    "by_agreement": FLAG,
    "personal_message": TEXT,
    "sender_contact_info": JSON_OBJECT,
    "hospitality_rider": TEXT,
    "tech_spec": TEXT,
    "selected_concept_id": TEXT,
    "concept_ids": JSON_LIST,
}

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}
_CENTS = Decimal("0.01")

DEFAULT_DOOR_PERCENTAGE = 50


def field_kind(field_name: str) -> str:
    kind = NEGOTIABLE_FIELDS.get(field_name)
    if kind is None:
        raise ValidationError(
            f"Field '{field_name}' cannot be changed by the parties.",
            field_name=field_name,
        )
    return kind


def _parse_number(field_name: str, raw: str, cast):
    try:
        return cast(raw)
    except (ValueError, InvalidOperation):
        raise ValidationError(f"'{raw}' is not a valid value for {field_name}.", field_name=field_name)


def _parse_coordinate(field_name: str, axis: str, raw: Any) -> float:
    limit = 90 if axis == "latitude" else 180
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not -limit <= raw <= limit:
        raise ValidationError(
            f"{field_name}.{axis} must be a number between -{limit} and {limit}.",
            field_name=field_name,
        )
    return float(raw)


def parse_field_value(field_name: str, raw: Optional[str]) -> Any:
    """Parse a text value into the Python value stored in the column."""
    kind = field_kind(field_name)
    text = raw.strip() if isinstance(raw, str) else raw
    empty = text is None or text == ""

    if kind == FLAG:
        if empty:
            return False
        lowered = text.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValidationError(f"'{raw}' is not a valid value for {field_name}.", field_name=field_name)

    if kind == JSON_LIST:
        if empty:
            return []
        try:
            value = json.loads(text)
        except ValueError:
            raise ValidationError(f"{field_name} must be a JSON list.", field_name=field_name)
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{field_name} must be a list of strings.", field_name=field_name)
        return value

    if empty:
        if kind == REQUIRED_TEXT:
            raise ValidationError(f"{field_name} cannot be empty.", field_name=field_name)
        return None

    if kind in (TEXT, REQUIRED_TEXT):
        return text

    if kind == DATE:
        try:
            return date.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"{field_name} must be an ISO date (YYYY-MM-DD).", field_name=field_name)

    if kind == MONEY:
        value = _parse_number(field_name, text, Decimal)
        if not value.is_finite() or value < 0:
            raise ValidationError(f"{field_name} must be a non-negative amount.", field_name=field_name)
        # quantize() raises past the context precision, so bound first.
        if value > MAX_AMOUNT or value.quantize(_CENTS) > MAX_AMOUNT:
            raise ValidationError(f"{field_name} must be at most {MAX_AMOUNT}.", field_name=field_name)
        return value.quantize(_CENTS)

    if kind in (COUNT, PERCENTAGE):
        value = _parse_number(field_name, text, int)
        if value < 0 or (kind == PERCENTAGE and value > 100):
            bounds = "between 0 and 100" if kind == PERCENTAGE else "non-negative"
            raise ValidationError(f"{field_name} must be {bounds}.", field_name=field_name)
        if value > MAX_COUNT:
            raise ValidationError(f"{field_name} must be at most {MAX_COUNT}.", field_name=field_name)
        return value

    if kind in (LATITUDE, LONGITUDE):
        value = _parse_number(field_name, text, float)
        limit = 90 if kind == LATITUDE else 180
        if not -limit <= value <= limit:
            raise ValidationError(f"{field_name} must be between -{limit} and {limit}.", field_name=field_name)
        return value

    if kind == COORDINATES:
        try:
            value = json.loads(text)
        except ValueError:
            value = None
        if not isinstance(value, dict) or set(value) != {"latitude", "longitude"}:
            raise ValidationError(
                f"{field_name} must be a JSON object with latitude and longitude.",
                field_name=field_name,
            )
        return {axis: _parse_coordinate(field_name, axis, value[axis]) for axis in ("latitude", "longitude")}

    if kind == JSON_OBJECT:
        try:
            value = json.loads(text)
        except ValueError:
            raise ValidationError(f"{field_name} must be a JSON object.", field_name=field_name)
        if not isinstance(value, dict):
            raise ValidationError(f"{field_name} must be a JSON object.", field_name=field_name)
        return value

    raise ValidationError(f"Unsupported field kind for {field_name}.", field_name=field_name)


def serialize_field_value(value: Any) -> Optional[str]:
    """Canonical text form used for the proposal log and stale checks."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return str(value.quantize(_CENTS))
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"))
    return str(value)


def column_values(field_name: str, value: Any) -> Dict[str, Any]:
    """Map a negotiated field value onto the booking columns that store it."""
    if NEGOTIABLE_FIELDS.get(field_name) == COORDINATES:
        value = value or {}
        return {"latitude": value.get("latitude"), "longitude": value.get("longitude")}
    return {field_name: value}


def current_field_text(booking, field_name: str) -> Optional[str]:
    field_kind(field_name)
    value = getattr(booking, field_name)
    if isinstance(value, str) and value.strip() == "":
        value = None
    if value is None and NEGOTIABLE_FIELDS[field_name] == FLAG:
        value = False
    if value is None and NEGOTIABLE_FIELDS[field_name] == JSON_LIST:
        value = []
    if value is not None and NEGOTIABLE_FIELDS[field_name] == MONEY and not isinstance(value, Decimal):
        value = Decimal(str(value))
    return serialize_field_value(value)


def canonical_text(field_name: str, raw: Optional[str]) -> Optional[str]:
    if field_kind(field_name) == REQUIRED_TEXT and (raw is None or raw.strip() == ""):
        return None
    return serialize_field_value(parse_field_value(field_name, raw))


def validate_against_booking(booking, field_name: str, value: Any) -> None:
    """Cross-field rules that depend on the rest of the booking."""
    if field_name == "selected_concept_id" and value is not None:
        concept_ids = booking.concept_ids or []
        if concept_ids and value not in concept_ids:
            raise ValidationError(
                "selected_concept_id must be one of the offered concepts.",
                field_name=field_name,
            )

    if field_name == "concept_ids" and value and booking.selected_concept_id:
        if booking.selected_concept_id not in value:
            raise ValidationError(
                "concept_ids must keep the currently selected concept.",
                field_name=field_name,
            )

    if field_name == "event_date" and value and booking.end_date and value > booking.end_date:
        raise ValidationError("event_date must be on or before end_date.", field_name=field_name)

    if field_name == "end_date" and value and booking.event_date and value < booking.event_date:
        raise ValidationError("end_date must be on or after event_date.", field_name=field_name)

    if field_name == "door_deal" and value and booking.by_agreement:
        raise ValidationError(
            "Turn off by_agreement before switching to a door deal.", field_name=field_name
        )

    if field_name == "by_agreement" and value and booking.door_deal:
        raise ValidationError(
            "Turn off door_deal before switching to by_agreement.", field_name=field_name
        )


def resolve_pricing_mode(booking) -> PricingMode:
    """Door deal wins over by-agreement, which wins over a fixed fee."""
    if booking.door_deal:
        return PricingMode.DOOR_DEAL
    if booking.by_agreement:
        return PricingMode.BY_AGREEMENT
    return PricingMode.ARTIST_FEE


def pricing_summary(booking) -> str:
    mode = resolve_pricing_mode(booking)
    if mode == PricingMode.DOOR_DEAL:
        return f"{booking.door_percentage or DEFAULT_DOOR_PERCENTAGE}% of door"
    if mode == PricingMode.BY_AGREEMENT:
        return "By agreement"
    fee = booking.artist_fee if booking.artist_fee is not None else Decimal("0")
    return f"{Decimal(str(fee)).quantize(_CENTS)} NOK"
