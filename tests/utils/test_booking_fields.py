from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from booking_engine.core.exceptions import ValidationError
from booking_engine.schemas.booking import PricingMode
from booking_engine.utils import booking_fields


def make_booking(**overrides):
    data = {field: None for field in booking_fields.NEGOTIABLE_FIELDS}
    data.update(door_deal=False, by_agreement=False, concept_ids=[], title="Jazz Night")
    data.update(overrides)
    return SimpleNamespace(**data)


@pytest.mark.parametrize("field_name", ["id", "status", "sender_id", "approved_by_sender", "deleted_at"])
def test_non_negotiable_fields_are_rejected(field_name):
    with pytest.raises(ValidationError) as exc_info:
        booking_fields.parse_field_value(field_name, "x")
    assert exc_info.value.field_name == field_name


def test_parse_typed_values():
    assert booking_fields.parse_field_value("event_date", "2026-07-01") == date(2026, 7, 1)
    assert booking_fields.parse_field_value("artist_fee", "100") == Decimal("100.00")
    assert booking_fields.parse_field_value("audience_estimate", " 300 ") == 300
    assert booking_fields.parse_field_value("door_deal", "true") is True
    assert booking_fields.parse_field_value("door_deal", "") is False
    assert booking_fields.parse_field_value("concept_ids", '["a", "b"]') == ["a", "b"]
    assert booking_fields.parse_field_value("sender_contact_info", '{"phone": "1"}') == {"phone": "1"}
    assert booking_fields.parse_field_value("venue", "") is None


@pytest.mark.parametrize(
    "field_name, raw",
    [
        ("title", "   "),
        ("event_date", "01.07.2026"),
        ("artist_fee", "-5"),
        ("artist_fee", "lots"),
        ("door_percentage", "101"),
        ("audience_estimate", "-1"),
        ("latitude", "91"),
        ("longitude", "-181"),
        ("door_deal", "maybe"),
        ("concept_ids", '{"a": 1}'),
        ("sender_contact_info", "[1, 2]"),
        ("artist_fee", "1e30"),
        ("ticket_price", "10000000000"),
        ("audience_estimate", "99999999999999999999"),
        ("coordinates", '{"latitude": 91, "longitude": 10.7}'),
        ("coordinates", '{"latitude": 59.9}'),
        ("coordinates", '{"latitude": "north", "longitude": 10.7}'),
        ("coordinates", "[59.9, 10.7]"),
    ],
)
def test_malformed_values(field_name, raw):
    with pytest.raises(ValidationError):
        booking_fields.parse_field_value(field_name, raw)


def test_canonical_text_treats_empty_as_null():
    assert booking_fields.canonical_text("venue", "") is None
    assert booking_fields.canonical_text("venue", None) is None
    assert booking_fields.canonical_text("title", "") is None


def test_canonical_text_normalizes_numbers_and_json():
    assert booking_fields.canonical_text("artist_fee", "100") == "100.00"
    assert booking_fields.canonical_text("artist_fee", "100.0") == "100.00"
    assert (
        booking_fields.canonical_text("sender_contact_info", '{"b": 1, "a": 2}')
        == '{"a":2,"b":1}'
    )


def test_current_field_text_matches_canonical_form():
    booking = make_booking(venue="  ", artist_fee=Decimal("100"), door_deal=None, concept_ids=None)
    assert booking_fields.current_field_text(booking, "venue") is None
    assert booking_fields.current_field_text(booking, "artist_fee") == "100.00"
    assert booking_fields.current_field_text(booking, "door_deal") == "false"
    assert booking_fields.current_field_text(booking, "concept_ids") == "[]"


def test_selected_concept_must_be_offered():
    booking = make_booking(concept_ids=["a", "b"], selected_concept_id="a")
    booking_fields.validate_against_booking(booking, "selected_concept_id", "b")

    with pytest.raises(ValidationError):
        booking_fields.validate_against_booking(booking, "selected_concept_id", "z")
    with pytest.raises(ValidationError):
        booking_fields.validate_against_booking(booking, "concept_ids", ["b"])


def test_date_ordering():
    booking = make_booking(event_date=date(2026, 7, 1), end_date=date(2026, 7, 3))
    with pytest.raises(ValidationError):
        booking_fields.validate_against_booking(booking, "event_date", date(2026, 7, 4))
    with pytest.raises(ValidationError):
        booking_fields.validate_against_booking(booking, "end_date", date(2026, 6, 30))


def test_pricing_modes_are_exclusive():
    with pytest.raises(ValidationError):
        booking_fields.validate_against_booking(make_booking(by_agreement=True), "door_deal", True)
    with pytest.raises(ValidationError):
        booking_fields.validate_against_booking(make_booking(door_deal=True), "by_agreement", True)

    # Turning a mode off is always allowed.
    booking_fields.validate_against_booking(make_booking(door_deal=True), "door_deal", False)


def test_pricing_resolution_and_summary():
    fee = make_booking(artist_fee=Decimal("15000"))
    assert booking_fields.resolve_pricing_mode(fee) == PricingMode.ARTIST_FEE
    assert booking_fields.pricing_summary(fee) == "15000.00 NOK"

    door = make_booking(door_deal=True, artist_fee=Decimal("15000"))
    assert booking_fields.resolve_pricing_mode(door) == PricingMode.DOOR_DEAL
    assert booking_fields.pricing_summary(door) == "50% of door"

    door.door_percentage = 70
    assert booking_fields.pricing_summary(door) == "70% of door"

    agreed = make_booking(by_agreement=True)
    assert booking_fields.pricing_summary(agreed) == "By agreement"


def test_amounts_and_counts_up_to_column_limits():
    assert booking_fields.parse_field_value("artist_fee", "9999999999.99") == Decimal("9999999999.99")
    assert booking_fields.parse_field_value("audience_estimate", "2147483647") == 2147483647

    with pytest.raises(ValidationError) as exc_info:
        booking_fields.parse_field_value("artist_fee", "9999999999.999")
    assert exc_info.value.field_name == "artist_fee"


def test_coordinates_parse_to_both_columns():
    value = booking_fields.parse_field_value("coordinates", '{"longitude": 10, "latitude": 59.91}')

    assert value == {"latitude": 59.91, "longitude": 10.0}
    assert booking_fields.column_values("coordinates", value) == {"latitude": 59.91, "longitude": 10.0}
    assert booking_fields.column_values("coordinates", None) == {"latitude": None, "longitude": None}
    assert booking_fields.column_values("venue", "Blå") == {"venue": "Blå"}


def test_coordinates_canonical_text_is_sorted_json():
    booking = make_booking(coordinates={"longitude": 10.75, "latitude": 59.91})

    expected = '{"latitude":59.91,"longitude":10.75}'
    assert booking_fields.current_field_text(booking, "coordinates") == expected
    assert booking_fields.canonical_text("coordinates", '{"longitude": 10.75, "latitude": 59.91}') == expected
    assert booking_fields.canonical_text("coordinates", "") is None
