# booking_engine/models/booking.py
import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Text, Boolean, Integer, Float, DateTime, Date,
    Numeric, Index, CheckConstraint, false, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.db.base_class import Base
from booking_engine.db.types import JSONType


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(
        String, primary_key=True, default=lambda: f"bkg_{uuid.uuid4().hex[:12]}"
    )

    # Parties (immutable after creation)
    sender_id = Column(String, nullable=False, index=True)  # organizer
    receiver_id = Column(String, nullable=False, index=True)  # performer

    # Negotiated content
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    time = Column(String, nullable=True)
    start_time = Column(String, nullable=True)  # HH:MM
    end_time = Column(String, nullable=True)  # HH:MM
    venue = Column(String, nullable=True)
    address = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    audience_estimate = Column(Integer, nullable=True)
    ticket_price = Column(Numeric(12, 2), nullable=True)

    # Pricing modes: artist_fee | door_deal + door_percentage | by_agreement
    artist_fee = Column(Numeric(12, 2), nullable=True)
    door_deal = Column(Boolean, nullable=False, default=False, server_default=false())
    door_percentage = Column(Integer, nullable=True)
    by_agreement = Column(Boolean, nullable=False, default=False, server_default=false())

    # Private to the two parties
    personal_message = Column(Text, nullable=True)
    sender_contact_info = Column(JSONType, nullable=True)
    hospitality_rider = Column(Text, nullable=True)
    tech_spec = Column(Text, nullable=True)

    # Offer set
    selected_concept_id = Column(String, nullable=True)
    concept_ids = Column(JSONType, nullable=False, default=list)

    # Workflow state
    status = Column(String, nullable=False, server_default=text("'pending'"))
    approved_by_sender = Column(Boolean, nullable=False, default=False, server_default=false())
    approved_by_receiver = Column(Boolean, nullable=False, default=False, server_default=false())
    sender_approved_at = Column(DateTime(timezone=True), nullable=True)
    receiver_approved_at = Column(DateTime(timezone=True), nullable=True)
    sender_read_agreement = Column(Boolean, nullable=False, default=False, server_default=false())
    receiver_read_agreement = Column(Boolean, nullable=False, default=False, server_default=false())
    is_public_after_approval = Column(Boolean, nullable=False, default=False, server_default=false())

    # Lifecycle markers
    allowed_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)  # first approved_by_both
    published_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    deletion_reason = Column(Text, nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    last_modified_by = Column(String, nullable=True)
    last_modified_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships (all owned by the booking, removed on purge)
    changes = relationship(
        "BookingChange",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingChange.created_at",
    )
    public_event = relationship(
        "PublicEvent",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
    )
    portfolio_attachments = relationship(
        "BookingPortfolioAttachment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingPortfolioAttachment.created_at",
    )
    audit_logs = relationship(
        "BookingAuditLog",
        back_populates="booking",
        cascade="all, delete-orphan",
    )

    @property
    def coordinates(self):
        """The negotiated location as one value; stored as two columns."""
        if self.latitude is None or self.longitude is None:
            return None
        return {"latitude": self.latitude, "longitude": self.longitude}

    __table_args__ = (
        CheckConstraint("sender_id <> receiver_id", name="ck_bookings_distinct_parties"),
        Index("ix_bookings_status_event_date", "status", "event_date"),
    )
