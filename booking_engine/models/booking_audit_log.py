# booking_engine/models/booking_audit_log.py
"""
Audit trail for booking lifecycle actions.
Tracks: create, accept, approve, approvals_reset, promote, complete,
cancel, publish, unpublish.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.db.base_class import Base
from booking_engine.db.types import JSONType


class BookingAuditLog(Base):
    __tablename__ = "booking_audit_log"

    id = Column(
        String, primary_key=True, default=lambda: f"bal_{uuid.uuid4().hex[:12]}"
    )
    booking_id = Column(
        String, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String, nullable=True, index=True)  # None for scheduled jobs

    # Action details
    action = Column(String(50), nullable=False, index=True)
    old_state = Column(String(50), nullable=True)
    new_state = Column(String(50), nullable=True)
    action_metadata = Column(JSONType, nullable=True)  # 'metadata' is reserved by SQLAlchemy

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    booking = relationship("Booking", back_populates="audit_logs")

    __table_args__ = (
        Index("idx_booking_audit_booking_created", "booking_id", "created_at"),
    )
