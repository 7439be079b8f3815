# booking_engine/crud/crud_booking_change.py
from typing import Optional, List, Iterable
from sqlalchemy.orm import Session

from booking_engine.models.booking_change import BookingChange


def append(
    db: Session,
    *,
    booking_id: str,
    field_name: str,
    old_value: Optional[str],
    new_value: Optional[str],
    proposed_by: str,
    proposer_is_sender: bool,
) -> BookingChange:
    """Stage a change entry. The caller commits it together with the field write."""
    entry = BookingChange(
        booking_id=booking_id,
        field_name=field_name,
        old_value=old_value,
        new_value=new_value,
        proposed_by=proposed_by,
        # The proposer has obviously seen their own change.
        acknowledged_by_sender=proposer_is_sender,
        acknowledged_by_receiver=not proposer_is_sender,
    )
    db.add(entry)
    return entry


def list_for_booking(db: Session, booking_id: str) -> List[BookingChange]:
    return (
        db.query(BookingChange)
        .filter(BookingChange.booking_id == booking_id)
        .order_by(BookingChange.created_at.asc())
        .all()
    )


def acknowledge_all(db: Session, *, booking_id: str, as_sender: bool) -> int:
    column = (
        BookingChange.acknowledged_by_sender
        if as_sender
        else BookingChange.acknowledged_by_receiver
    )
    count = (
        db.query(BookingChange)
        .filter(BookingChange.booking_id == booking_id, column == False)  # noqa: E712
        .update({column: True}, synchronize_session=False)
    )
    db.commit()
    return count


def redact_fields(db: Session, *, booking_id: str, field_names: Iterable[str]) -> int:
    """Blank out logged values of scrubbed fields. The caller commits."""
    return (
        db.query(BookingChange)
        .filter(
            BookingChange.booking_id == booking_id,
            BookingChange.field_name.in_(list(field_names)),
        )
        .update(
            {BookingChange.old_value: None, BookingChange.new_value: None},
            synchronize_session=False,
        )
    )
