# booking_engine/models/__init__.py
# Import all models to ensure SQLAlchemy can resolve relationships

from booking_engine.db.base_class import Base
from booking_engine.models.booking import Booking
from booking_engine.models.booking_change import BookingChange
from booking_engine.models.public_event import PublicEvent
from booking_engine.models.booking_portfolio_attachment import BookingPortfolioAttachment
from booking_engine.models.booking_audit_log import BookingAuditLog
