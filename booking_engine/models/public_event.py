# booking_engine/models/public_event.py
import uuid
from sqlalchemy import (
    Column, String, Text, Integer, Date, DateTime, Numeric, ForeignKey
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.db.base_class import Base
from booking_engine.db.types import JSONType


class PublicEvent(Base):
    """
    Public, unauthenticated projection of an approved booking.

    Rows are derived by the publication gate and never edited directly.
    Only allow-listed columns live here; keep it that way.
    """

    __tablename__ = "public_events"

    id = Column(
        String, primary_key=True, default=lambda: f"pev_{uuid.uuid4().hex[:12]}"
    )
    booking_id = Column(
        String,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(Date, nullable=True, index=True)
    time = Column(String, nullable=True)
    venue = Column(String, nullable=True)
    ticket_price = Column(Numeric(12, 2), nullable=True)
    audience_estimate = Column(Integer, nullable=True)

    media = Column(JSONType, nullable=False, default=list)
    performer = Column(JSONType, nullable=True)

    published_by = Column(String, nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    booking = relationship("Booking", back_populates="public_event")
