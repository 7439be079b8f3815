# booking_engine/crud/crud_public_event.py
from typing import Optional, List, Dict, Any
from datetime import date
from sqlalchemy.orm import Session

from booking_engine.models.public_event import PublicEvent


def get(db: Session, public_event_id: str) -> Optional[PublicEvent]:
    return db.query(PublicEvent).filter(PublicEvent.id == public_event_id).first()


def get_by_booking(db: Session, booking_id: str) -> Optional[PublicEvent]:
    return db.query(PublicEvent).filter(PublicEvent.booking_id == booking_id).first()


def upsert(
    db: Session, *, booking_id: str, projection: Dict[str, Any], published_by: Optional[str]
) -> PublicEvent:
    """Replace the projection columns wholesale. The caller commits."""
    db_obj = get_by_booking(db, booking_id)
    if db_obj is None:
        db_obj = PublicEvent(booking_id=booking_id)
        db.add(db_obj)

    for field, value in projection.items():
        setattr(db_obj, field, value)
    if published_by:
        db_obj.published_by = published_by
    return db_obj


def delete_for_booking(db: Session, booking_id: str) -> int:
    """Remove the projection of a booking. The caller commits."""
    return (
        db.query(PublicEvent)
        .filter(PublicEvent.booking_id == booking_id)
        .delete(synchronize_session=False)
    )


def list_public(
    db: Session,
    from_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
) -> List[PublicEvent]:
    query = db.query(PublicEvent)
    if from_date:
        query = query.filter(PublicEvent.event_date >= from_date)
    return (
        query.order_by(PublicEvent.event_date.asc(), PublicEvent.created_at.asc())
        .offset(skip)
        .limit(min(limit, 100))
        .all()
    )
