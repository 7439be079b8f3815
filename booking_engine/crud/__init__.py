# booking_engine/crud/__init__.py

from . import crud_booking
from . import crud_booking_audit_log
from . import crud_booking_change
from . import crud_booking_portfolio_attachment
from . import crud_public_event
