import uuid
from datetime import date, timedelta

from sqlalchemy.orm import Session

from booking_engine.crud import crud_booking
from booking_engine.models.booking import Booking
from booking_engine.schemas.booking import BookingCreate

SENDER_ID = "user_organizer"
RECEIVER_ID = "user_performer"


def random_lower_string() -> str:
    return uuid.uuid4().hex[:10]


def booking_payload(**overrides) -> dict:
    data = {
        "receiver_id": RECEIVER_ID,
        "title": f"Concert {random_lower_string()}",
        "description": "An evening of live music",
        "event_date": (date.today() + timedelta(days=30)).isoformat(),
        "time": "20:00",
        "venue": "",
        "audience_estimate": 120,
        "ticket_price": "250.00",
        "artist_fee": "15000.00",
        "personal_message": "Looking forward to working with you",
        "sender_contact_info": {"phone": "+47 900 00 000", "email": "booker@example.com"},
        "hospitality_rider": "Two bottles of water",
        "concept_ids": ["concept_a", "concept_b"],
        "selected_concept_id": "concept_a",
    }
    data.update(overrides)
    return data


def create_random_booking(
    db: Session, sender_id: str = SENDER_ID, **overrides
) -> Booking:
    data = BookingCreate(**booking_payload(**overrides))
    return crud_booking.create(db, sender_id=sender_id, data=data)


def set_status(db: Session, booking: Booking, status: str, **values) -> Booking:
    """Force a booking into a status for tests that start mid-lifecycle."""
    return crud_booking.update_fields(db, booking=booking, values={"status": status, **values})
