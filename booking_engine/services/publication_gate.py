# booking_engine/services/publication_gate.py
"""
Public projection of agreed bookings.

The `public_events` row of a booking is derived, never edited directly: it is
rebuilt from the booking, its portfolio attachments and the performer's
public profile whenever publication is toggled or a public input changes.

The projection is built from explicit allow-lists. A booking column that is
not listed in PUBLIC_FIELDS never reaches a public reader, whatever it holds.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from booking_engine.core.exceptions import NotFoundError
from booking_engine.crud import (
    crud_booking,
    crud_booking_audit_log,
    crud_booking_portfolio_attachment,
    crud_public_event,
)
from booking_engine.models.booking import Booking
from booking_engine.models.public_event import PublicEvent
from booking_engine.schemas.booking import PortfolioAttachmentCreate
from booking_engine.services import booking_state_machine as sm
from booking_engine.services.booking_events import (
    BookingEvent,
    BookingEventDispatcher,
    BOOKING_PUBLISHED,
    BOOKING_UNPUBLISHED,
)
from booking_engine.services.profile_client import PUBLIC_PROFILE_FIELDS

logger = logging.getLogger(__name__)

PUBLIC_FIELDS = (
    "title",
    "description",
    "event_date",
    "time",
    "venue",
    "ticket_price",
    "audience_estimate",
)


def build_public_projection(
    booking: Booking,
    attachments: List[Any],
    profile: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Map a booking to the column values of its public_events row."""
    projection = {field: getattr(booking, field) for field in PUBLIC_FIELDS}

    projection["media"] = [
        {
            "id": attachment.portfolio_file_id,
            "title": attachment.title,
            "file_url": attachment.file_url,
            "mime_type": attachment.mime_type,
        }
        for attachment in attachments
    ]

    performer = None
    if profile:
        performer = {"id": booking.receiver_id}
        performer.update({key: profile.get(key) for key in PUBLIC_PROFILE_FIELDS})
    projection["performer"] = performer
    return projection


def _default_profile_lookup(user_id: str) -> Optional[Dict[str, Any]]:
    from booking_engine.services.profile_client import profile_client
    return profile_client.get_public_profile(user_id)


class PublicationGate:
    def __init__(
        self,
        db: Session,
        dispatcher: Optional[BookingEventDispatcher] = None,
        profile_lookup: Optional[Callable[[str], Optional[Dict[str, Any]]]] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher or BookingEventDispatcher()
        self.profile_lookup = profile_lookup or _default_profile_lookup

    # ── Publication ──────────────────────────────────────────────────

    def publish(self, booking_id: str, actor_id: str) -> PublicEvent:
        """
        Expose the allow-listed subset of a mutually approved booking.
        Publishing again refreshes the projection.
        """
        booking = self._get_booking(booking_id)
        sm.check_publish(booking, actor_id)

        projection = self._projection_for(booking)
        public_event = crud_public_event.upsert(
            self.db, booking_id=booking.id, projection=projection, published_by=actor_id
        )
        booking.is_public_after_approval = True
        if booking.published_at is None:
            booking.published_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(public_event)

        logger.info(f"Booking {booking.id} published as {public_event.id} by {actor_id}")
        crud_booking_audit_log.create_audit_entry(
            self.db, booking_id=booking.id, user_id=actor_id, action="publish",
            new_state=booking.status, metadata={"public_event_id": public_event.id},
        )
        self.dispatcher.emit(BookingEvent.for_booking(
            BOOKING_PUBLISHED, booking, actor_id, public_event_id=public_event.id
        ))
        return public_event

    def unpublish(self, booking_id: str, actor_id: str) -> Booking:
        """Remove the projection. The booking itself is left untouched."""
        booking = self._get_booking(booking_id)
        sm.require_party(booking, actor_id)

        if not booking.is_public_after_approval:
            return booking

        crud_public_event.delete_for_booking(self.db, booking.id)
        booking.is_public_after_approval = False
        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"Booking {booking.id} unpublished by {actor_id}")
        crud_booking_audit_log.create_audit_entry(
            self.db, booking_id=booking.id, user_id=actor_id, action="unpublish",
            new_state=booking.status,
        )
        self.dispatcher.emit(BookingEvent.for_booking(BOOKING_UNPUBLISHED, booking, actor_id))
        return booking

    def refresh_projection(self, booking_id: str) -> Optional[PublicEvent]:
        """Rebuild the projection of a published booking; no-op otherwise."""
        booking = self._get_booking(booking_id)
        if not booking.is_public_after_approval:
            return None

        public_event = crud_public_event.upsert(
            self.db, booking_id=booking.id, projection=self._projection_for(booking),
            published_by=None,
        )
        self.db.commit()
        self.db.refresh(public_event)
        return public_event

    # ── Public reads ─────────────────────────────────────────────────

    def get_public_event(self, public_event_id: str) -> PublicEvent:
        public_event = crud_public_event.get(self.db, public_event_id)
        if public_event is None:
            raise NotFoundError(f"Public event {public_event_id} not found.")
        return public_event

    def list_public_events(self, from_date=None, skip: int = 0, limit: int = 50) -> List[PublicEvent]:
        return crud_public_event.list_public(self.db, from_date=from_date, skip=skip, limit=limit)

    # ── Portfolio attachments ────────────────────────────────────────

    def list_attachments(self, booking_id: str, actor_id: str, is_admin: bool = False):
        booking = self._get_booking(booking_id)
        if not is_admin:
            sm.require_party(booking, actor_id)
        return crud_booking_portfolio_attachment.list_for_booking(self.db, booking.id)

    def attach_portfolio_file(self, booking_id: str, actor_id: str, data: PortfolioAttachmentCreate):
        booking = self._get_booking(booking_id)
        sm.check_attach(booking, actor_id)

        existing = crud_booking_portfolio_attachment.get_by_file(
            self.db, booking.id, data.portfolio_file_id
        )
        if existing is not None:
            return existing

        attachment = crud_booking_portfolio_attachment.create(
            self.db, booking_id=booking.id, attached_by=actor_id, data=data
        )
        logger.info(f"Portfolio file {data.portfolio_file_id} attached to booking {booking.id}")
        self.refresh_projection(booking.id)
        return attachment

    def detach_portfolio_file(self, booking_id: str, attachment_id: str, actor_id: str) -> None:
        booking = self._get_booking(booking_id)
        sm.check_attach(booking, actor_id)

        attachment = crud_booking_portfolio_attachment.get(self.db, attachment_id)
        if attachment is None or attachment.booking_id != booking.id:
            raise NotFoundError(f"Attachment {attachment_id} not found on booking {booking.id}.")

        crud_booking_portfolio_attachment.delete(self.db, attachment=attachment)
        logger.info(f"Attachment {attachment_id} removed from booking {booking.id}")
        self.refresh_projection(booking.id)

    # ── Helpers ──────────────────────────────────────────────────────

    def _get_booking(self, booking_id: str) -> Booking:
        booking = crud_booking.get(self.db, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        return booking

    def _projection_for(self, booking: Booking) -> Dict[str, Any]:
        attachments = crud_booking_portfolio_attachment.list_for_booking(self.db, booking.id)
        profile = None
        try:
            profile = self.profile_lookup(booking.receiver_id)
        except Exception as e:
            logger.error(f"Profile lookup failed for {booking.receiver_id}: {e}", exc_info=True)
        return build_public_projection(booking, attachments, profile)
