# booking_engine/crud/crud_booking.py
from typing import Optional, List, Dict, Any, Iterable
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy import or_

from booking_engine.models.booking import Booking
from booking_engine.schemas.booking import BookingCreate, BookingStatus


def create(db: Session, *, sender_id: str, data: BookingCreate) -> Booking:
    obj_data = data.model_dump(exclude={"coordinates"})
    coordinates = data.coordinates

    db_obj = Booking(
        **obj_data,
        sender_id=sender_id,
        latitude=coordinates.latitude if coordinates else None,
        longitude=coordinates.longitude if coordinates else None,
        status=BookingStatus.PENDING.value,
        approved_by_sender=False,
        approved_by_receiver=False,
        is_public_after_approval=False,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def get(db: Session, booking_id: str) -> Optional[Booking]:
    return db.query(Booking).filter(Booking.id == booking_id).first()


def get_for_update(db: Session, booking_id: str) -> Optional[Booking]:
    """Load the row with a write lock (no-op on SQLite) and fresh attributes."""
    return (
        db.query(Booking)
        .filter(Booking.id == booking_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def list_for_party(
    db: Session,
    user_id: str,
    status: Optional[str] = None,
    role: Optional[str] = None,
) -> List[Booking]:
    query = db.query(Booking)

    if role == "sender":
        query = query.filter(Booking.sender_id == user_id)
    elif role == "receiver":
        query = query.filter(Booking.receiver_id == user_id)
    else:
        query = query.filter(
            or_(Booking.sender_id == user_id, Booking.receiver_id == user_id)
        )

    if status:
        query = query.filter(Booking.status == status)

    return query.order_by(Booking.created_at.desc()).all()


def update_fields(db: Session, *, booking: Booking, values: Dict[str, Any]) -> Booking:
    for field, value in values.items():
        setattr(booking, field, value)
    db.commit()
    db.refresh(booking)
    return booking


def set_columns(
    db: Session,
    booking_id: str,
    values: Dict[str, Any],
    *,
    from_statuses: Optional[Iterable[BookingStatus]] = None,
) -> int:
    """
    Single-row UPDATE touching only the given columns.

    Used for the approval flags and read receipts, which both parties may
    write at the same time; a whole-record write would drop the other
    party's flag. With `from_statuses` the write applies only while the
    booking is still in one of them. Returns the number of rows updated.
    """
    query = db.query(Booking).filter(Booking.id == booking_id)
    if from_statuses is not None:
        query = query.filter(Booking.status.in_([s.value for s in from_statuses]))
    count = query.update(values, synchronize_session=False)
    db.commit()
    return count


def update_status_if_flags(
    db: Session,
    booking_id: str,
    *,
    from_statuses: Iterable[BookingStatus],
    approved_by_sender: bool,
    approved_by_receiver: bool,
    values: Dict[str, Any],
) -> int:
    """
    Conditional status write: applies only while both flags still hold the
    values the caller just read. Returns the number of rows updated.
    """
    count = (
        db.query(Booking)
        .filter(
            Booking.id == booking_id,
            Booking.status.in_([s.value for s in from_statuses]),
            Booking.approved_by_sender == approved_by_sender,
            Booking.approved_by_receiver == approved_by_receiver,
        )
        .update(values, synchronize_session=False)
    )
    db.commit()
    return count


def read_flags(db: Session, booking_id: str):
    """Fresh read of the approval flags, bypassing the identity map."""
    return (
        db.query(Booking.approved_by_sender, Booking.approved_by_receiver, Booking.status)
        .filter(Booking.id == booking_id)
        .first()
    )


def delete(db: Session, *, booking: Booking) -> None:
    db.delete(booking)
    db.commit()


def list_due_for_promotion(db: Session, today: date) -> List[Booking]:
    return (
        db.query(Booking)
        .filter(
            Booking.status == BookingStatus.APPROVED_BY_BOTH.value,
            Booking.event_date.isnot(None),
            Booking.event_date >= today,
        )
        .all()
    )


def list_due_for_completion(db: Session, today: date) -> List[Booking]:
    return (
        db.query(Booking)
        .filter(
            Booking.status == BookingStatus.UPCOMING.value,
            Booking.event_date.isnot(None),
            Booking.event_date < today,
        )
        .all()
    )
