# booking_engine/background_tasks/booking_tasks.py
"""
Background tasks for time-based booking transitions.
"""
import logging

from booking_engine.core.exceptions import BookingError
from booking_engine.db.session import SessionLocal
from booking_engine.services.booking_events import get_event_dispatcher
from booking_engine.services.booking_lifecycle import BookingLifecycleService

logger = logging.getLogger(__name__)


def promote_due_bookings():
    """
    Background task: move approved bookings to 'upcoming' once both parties
    have read the agreement and the event is still ahead.

    Returns: Number of bookings promoted
    """
    db = SessionLocal()
    try:
        service = BookingLifecycleService(db, get_event_dispatcher())
        promoted = service.promote_due()

        if promoted:
            logger.info(f"Promoted {len(promoted)} booking(s) to upcoming")

        return len(promoted)

    except BookingError as e:
        db.rollback()
        logger.error(f"Error in promote_due_bookings task: {e.message}")
        return 0

    finally:
        db.close()


def complete_past_bookings():
    """
    Background task: complete 'upcoming' bookings whose event date has passed.

    Returns: Number of bookings completed
    """
    db = SessionLocal()
    try:
        service = BookingLifecycleService(db, get_event_dispatcher())
        completed = service.complete_due()

        if completed:
            logger.info(f"Completed {len(completed)} past booking(s)")

        return len(completed)

    except BookingError as e:
        db.rollback()
        logger.error(f"Error in complete_past_bookings task: {e.message}")
        return 0

    finally:
        db.close()
