# booking_engine/crud/crud_booking_audit_log.py
"""
CRUD operations for the booking audit trail.
"""
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session

from booking_engine.models.booking_audit_log import BookingAuditLog


def create_audit_entry(
    db: Session,
    *,
    booking_id: str,
    user_id: Optional[str],
    action: str,
    old_state: Optional[str] = None,
    new_state: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> BookingAuditLog:
    """Create an audit log entry."""
    entry = BookingAuditLog(
        booking_id=booking_id,
        user_id=user_id,
        action=action,
        old_state=old_state,
        new_state=new_state,
        action_metadata=metadata,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def get_audit_log_for_booking(
    db: Session,
    booking_id: str,
    limit: int = 100,
) -> List[BookingAuditLog]:
    """Get audit trail for a booking, oldest first."""
    return (
        db.query(BookingAuditLog)
        .filter(BookingAuditLog.booking_id == booking_id)
        .order_by(BookingAuditLog.created_at.asc())
        .limit(limit)
        .all()
    )
