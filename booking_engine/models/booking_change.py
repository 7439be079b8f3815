# booking_engine/models/booking_change.py
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, false
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.db.base_class import Base


class BookingChange(Base):
    """Append-only log of field-level proposals. Values are canonical text."""

    __tablename__ = "booking_changes"

    id = Column(
        String, primary_key=True, default=lambda: f"bkc_{uuid.uuid4().hex[:12]}"
    )
    booking_id = Column(
        String,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_name = Column(String, nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    proposed_by = Column(String, nullable=False)

    # Read-receipts so each party can see which changes are new to them
    acknowledged_by_sender = Column(Boolean, nullable=False, default=False, server_default=false())
    acknowledged_by_receiver = Column(Boolean, nullable=False, default=False, server_default=false())

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    booking = relationship("Booking", back_populates="changes")
