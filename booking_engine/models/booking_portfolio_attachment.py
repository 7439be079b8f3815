# booking_engine/models/booking_portfolio_attachment.py
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from booking_engine.db.base_class import Base


class BookingPortfolioAttachment(Base):
    __tablename__ = "booking_portfolio_attachments"

    id = Column(
        String, primary_key=True, default=lambda: f"bpa_{uuid.uuid4().hex[:12]}"
    )
    booking_id = Column(
        String,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    portfolio_file_id = Column(String, nullable=False)
    title = Column(String, nullable=True)
    file_url = Column(String, nullable=False)
    mime_type = Column(String, nullable=True)
    attached_by = Column(String, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    booking = relationship("Booking", back_populates="portfolio_attachments")

    __table_args__ = (
        UniqueConstraint("booking_id", "portfolio_file_id", name="uq_booking_portfolio_file"),
    )
