# booking_engine/services/booking_events.py
"""
Domain events emitted by the booking engine and their delivery.

Events are handed to a dispatcher only after the state change has been
committed. Delivery is best-effort and at-least-once from the consumer's
point of view: a failing sink is logged and skipped, and never rolls back
or blocks the transition that produced the event.

Sinks:
- Realtime: Kafka topic consumed by the websocket gateway.
- Notifications: in-app messages for the other party over Redis pub/sub.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from booking_engine.core.config import settings

logger = logging.getLogger(__name__)

# Event types
BOOKING_REQUESTED = "BookingRequested"
BOOKING_ACCEPTED = "BookingAccepted"
BOOKING_FIELD_CHANGED = "BookingFieldChanged"
BOOKING_APPROVAL_RECORDED = "BookingApprovalRecorded"
BOOKING_APPROVED = "BookingApproved"
BOOKING_APPROVALS_RESET = "BookingApprovalsReset"
BOOKING_UPCOMING = "BookingUpcoming"
BOOKING_COMPLETED = "BookingCompleted"
BOOKING_CANCELLED = "BookingCancelled"
BOOKING_REJECTED = "BookingRejected"
BOOKING_PURGED = "BookingPurged"
BOOKING_PUBLISHED = "BookingPublished"
BOOKING_UNPUBLISHED = "BookingUnpublished"

# (title, message, link) shown to the recipient of an in-app notification.
NOTIFICATION_TEMPLATES = {
    BOOKING_REQUESTED: (
        "New booking request",
        "You have received a new booking request: {title}",
        "/bookings?tab=incoming",
    ),
    BOOKING_ACCEPTED: (
        "Booking request accepted",
        "Your request '{title}' was accepted. Negotiation is open.",
        "/bookings/{booking_id}",
    ),
    BOOKING_FIELD_CHANGED: (
        "Booking updated",
        "'{field_name}' was changed on '{title}'.",
        "/bookings/{booking_id}",
    ),
    BOOKING_APPROVAL_RECORDED: (
        "Booking approved by the other party",
        "The other party approved '{title}'. Your approval is needed.",
        "/bookings/{booking_id}",
    ),
    BOOKING_APPROVED: (
        "Booking approved by both parties",
        "'{title}' is agreed and ready to be published.",
        "/bookings/{booking_id}",
    ),
    BOOKING_APPROVALS_RESET: (
        "Approval needed again",
        "Terms of '{title}' changed, so both approvals were withdrawn.",
        "/bookings/{booking_id}",
    ),
    BOOKING_CANCELLED: (
        "Booking cancelled",
        "'{title}' was cancelled.",
        "/bookings?tab=history",
    ),
    BOOKING_REJECTED: (
        "Booking request declined",
        "Your request '{title}' was declined.",
        "/bookings",
    ),
    BOOKING_PUBLISHED: (
        "Event published",
        "'{title}' is now publicly listed.",
        "/bookings/{booking_id}",
    ),
}


@dataclass
class BookingEvent:
    type: str
    booking_id: str
    sender_id: str
    receiver_id: str
    actor_id: Optional[str] = None
    title: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_booking(cls, event_type: str, booking, actor_id: Optional[str] = None, **data):
        return cls(
            type=event_type,
            booking_id=booking.id,
            sender_id=booking.sender_id,
            receiver_id=booking.receiver_id,
            actor_id=actor_id,
            title=booking.title,
            data=data,
        )

    def recipients(self) -> List[str]:
        """Parties to notify: everyone except the party who acted."""
        return [
            user_id
            for user_id in (self.sender_id, self.receiver_id)
            if user_id != self.actor_id
        ]

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "bookingId": self.booking_id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "actorId": self.actor_id,
            "data": self.data,
            "occurredAt": self.occurred_at.isoformat(),
        }


class RealtimeSink:
    """Pushes every event to the booking events topic."""

    def __init__(self, topic: Optional[str] = None, producer_factory=None):
        self.topic = topic or settings.BOOKING_EVENTS_TOPIC
        if producer_factory is None:
            from booking_engine.core.kafka_producer import get_kafka_singleton
            producer_factory = get_kafka_singleton
        self._producer_factory = producer_factory

    def publish(self, event: BookingEvent) -> None:
        producer = self._producer_factory()
        if producer is None:
            logger.warning("Kafka producer unavailable, skipping %s for %s", event.type, event.booking_id)
            return
        # Keyed by booking so a consumer sees each booking's events in order.
        producer.send(self.topic, key=event.booking_id, value=event.to_message())


class NotificationSink:
    """In-app notifications for the party who did not trigger the event."""

    def __init__(self, redis_client=None, channel_prefix: Optional[str] = None):
        if redis_client is None:
            from booking_engine.db.redis import redis_client as shared_client
            redis_client = shared_client
        self.redis = redis_client
        self.channel_prefix = channel_prefix or settings.NOTIFICATION_CHANNEL_PREFIX

    def build_notification(self, event: BookingEvent, user_id: str) -> Optional[Dict[str, Any]]:
        template = NOTIFICATION_TEMPLATES.get(event.type)
        if template is None:
            return None
        title, message, link = template
        context = {"title": event.title or "", "booking_id": event.booking_id, **event.data}
        return {
            "user_id": user_id,
            "type": event.type,
            "title": title,
            "message": message.format_map(_DefaultDict(context)),
            "link": link.format_map(_DefaultDict(context)),
            "booking_id": event.booking_id,
            "created_at": event.occurred_at.isoformat(),
        }

    def publish(self, event: BookingEvent) -> None:
        for user_id in event.recipients():
            payload = self.build_notification(event, user_id)
            if payload is None:
                continue
            self.redis.publish(f"{self.channel_prefix}:{user_id}", json.dumps(payload))


class _DefaultDict(dict):
    def __missing__(self, key):
        return ""


class BookingEventDispatcher:
    def __init__(self, sinks=None):
        self.sinks = list(sinks or [])

    def emit(self, event: BookingEvent) -> None:
        logger.info("Booking event %s for %s", event.type, event.booking_id)
        for sink in self.sinks:
            try:
                sink.publish(event)
            except Exception as e:
                logger.error(
                    f"{type(sink).__name__} failed to deliver {event.type} "
                    f"for booking {event.booking_id}: {e}",
                    exc_info=True,
                )


_dispatcher: Optional[BookingEventDispatcher] = None


def get_event_dispatcher() -> BookingEventDispatcher:
    """Process-wide dispatcher; also used as a FastAPI dependency."""
    global _dispatcher
    if _dispatcher is None:
        sinks = []
        if settings.REALTIME_ENABLED:
            sinks.append(RealtimeSink())
        if settings.NOTIFICATIONS_ENABLED:
            sinks.append(NotificationSink())
        _dispatcher = BookingEventDispatcher(sinks)
    return _dispatcher
