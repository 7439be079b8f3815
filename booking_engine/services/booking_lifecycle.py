# booking_engine/services/booking_lifecycle.py
"""
Booking store and lifecycle operations.

A stateless service over a SQLAlchemy session: every call re-reads the
booking, validates the transition with the pure rules in
`booking_state_machine`, writes through the crud layer and only then emits
domain events. Clients render the records this returns; they never mutate
local copies.
"""
import logging
from datetime import datetime, timezone, date
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from booking_engine.core.config import settings
from booking_engine.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
    WrongPartyError,
)
from booking_engine.crud import (
    crud_booking,
    crud_booking_audit_log,
    crud_booking_change,
    crud_public_event,
)
from booking_engine.models.booking import Booking
from booking_engine.schemas.booking import BookingCreate, BookingStatus, PartyRole
from booking_engine.services import booking_state_machine as sm
from booking_engine.services.booking_events import (
    BookingEvent,
    BookingEventDispatcher,
    BOOKING_REQUESTED,
    BOOKING_ACCEPTED,
    BOOKING_FIELD_CHANGED,
    BOOKING_APPROVAL_RECORDED,
    BOOKING_APPROVED,
    BOOKING_APPROVALS_RESET,
    BOOKING_UPCOMING,
    BOOKING_COMPLETED,
    BOOKING_CANCELLED,
    BOOKING_REJECTED,
    BOOKING_PURGED,
)
from booking_engine.utils import booking_fields

logger = logging.getLogger(__name__)

# Scrubbed on cancellation; descriptive fields stay for the history view.
SENSITIVE_FIELDS = (
    "sender_contact_info",
    "personal_message",
    "artist_fee",
    "door_percentage",
    "hospitality_rider",
    "tech_spec",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookingLifecycleService:
    def __init__(
        self,
        db: Session,
        dispatcher: Optional[BookingEventDispatcher] = None,
        *,
        reset_approvals_on_edit: Optional[bool] = None,
        require_agreement_read: Optional[bool] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.dispatcher = dispatcher or BookingEventDispatcher()
        self.reset_approvals_on_edit = (
            settings.RESET_APPROVALS_ON_EDIT
            if reset_approvals_on_edit is None
            else reset_approvals_on_edit
        )
        self.require_agreement_read = (
            settings.REQUIRE_AGREEMENT_READ
            if require_agreement_read is None
            else require_agreement_read
        )
        self.clock = clock

    def today(self) -> date:
        return self.clock().date()

    # ── Store ────────────────────────────────────────────────────────

    def create(self, sender_id: str, data: BookingCreate) -> Booking:
        if not sender_id:
            raise ValidationError("sender_id is required.", field_name="sender_id")
        if data.receiver_id == sender_id:
            raise ValidationError(
                "Sender and receiver must be different users.", field_name="receiver_id"
            )

        booking = crud_booking.create(self.db, sender_id=sender_id, data=data)
        logger.info(f"Booking {booking.id} requested by {sender_id} for {booking.receiver_id}")

        self._audit(booking, sender_id, "create", new_state=booking.status,
                    metadata={"title": booking.title})
        self._emit(BOOKING_REQUESTED, booking, sender_id)
        return booking

    def get(self, booking_id: str, actor_id: Optional[str] = None, is_admin: bool = False) -> Booking:
        """Fetch a booking. With an actor, only the two parties (or an admin) may read it."""
        booking = crud_booking.get(self.db, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        if actor_id is not None and not is_admin:
            sm.require_party(booking, actor_id)
        return booking

    def list_for_party(
        self, user_id: str, status: Optional[str] = None, role: Optional[str] = None
    ) -> List[Booking]:
        if status is not None:
            status = sm.as_status(status).value
        if role is not None:
            role = PartyRole(role).value
        return crud_booking.list_for_party(self.db, user_id, status=status, role=role)

    def apply_field_update(self, booking_id: str, field_name: str, value: Optional[str], actor_id: str) -> Booking:
        """Write one negotiable field without a stale-value check or log entry."""
        booking = self._get_for_update(booking_id)
        sm.require_party(booking, actor_id)
        sm.ensure_editable(booking)

        parsed = booking_fields.parse_field_value(field_name, value)
        booking_fields.validate_against_booking(booking, field_name, parsed)

        booking, reset = self.write_field(booking, field_name, parsed, actor_id)
        logger.info(f"Booking {booking.id}: {field_name} updated by {actor_id}")

        self.after_field_write(booking, field_name, actor_id, reset)
        return booking

    def write_field(self, booking: Booking, field_name: str, value: Any, actor_id: str):
        """
        Stage and commit a negotiated field write, applying the approval-reset
        policy. Anything already staged on the session (e.g. a change log
        entry) is committed in the same transaction.

        Returns (booking, approvals_were_reset).
        """
        now = self.clock()
        values: Dict[str, Any] = booking_fields.column_values(field_name, value)
        values.update(last_modified_by=actor_id, last_modified_at=now)

        reset = self.reset_approvals_on_edit and (
            booking.approved_by_sender or booking.approved_by_receiver
        )
        if reset:
            values.update(
                approved_by_sender=False,
                approved_by_receiver=False,
                sender_approved_at=None,
                receiver_approved_at=None,
                sender_read_agreement=False,
                receiver_read_agreement=False,
                status=BookingStatus.ALLOWED.value,
            )

        old_status = booking.status
        booking = crud_booking.update_fields(self.db, booking=booking, values=values)

        if reset:
            logger.info(f"Booking {booking.id}: approvals reset after change to {field_name}")
            self._audit(booking, actor_id, "approvals_reset", old_state=old_status,
                        new_state=booking.status, metadata={"field_name": field_name})
        return booking, reset

    def after_field_write(self, booking: Booking, field_name: str, actor_id: str, reset: bool) -> None:
        self._emit(BOOKING_FIELD_CHANGED, booking, actor_id, field_name=field_name)
        if reset:
            self._emit(BOOKING_APPROVALS_RESET, booking, actor_id, field_name=field_name)

    # ── Transitions ──────────────────────────────────────────────────

    def accept(self, booking_id: str, actor_id: str) -> Booking:
        """pending -> allowed. Receiver only."""
        booking = self._get_for_update(booking_id)
        sm.check_accept(booking, actor_id)

        booking = crud_booking.update_fields(
            self.db,
            booking=booking,
            values={"status": BookingStatus.ALLOWED.value, "allowed_at": self.clock()},
        )
        logger.info(f"Booking {booking.id} accepted by receiver {actor_id}")

        self._audit(booking, actor_id, "accept", old_state=BookingStatus.PENDING.value,
                    new_state=booking.status)
        self._emit(BOOKING_ACCEPTED, booking, actor_id)
        return booking

    def approve(self, booking_id: str, actor_id: str) -> Booking:
        """
        Record the caller's approval flag, then derive the status from a fresh
        read of both flags. The second approval, from whichever side, moves
        the booking to approved_by_both.
        """
        booking = self.get(booking_id)
        role = sm.check_approve(booking, actor_id)
        old_status = booking.status
        now = self.clock()

        if role == PartyRole.SENDER:
            already_approved = bool(booking.approved_by_sender)
            flag_values = {"approved_by_sender": True, "sender_approved_at": now}
        else:
            already_approved = bool(booking.approved_by_receiver)
            flag_values = {"approved_by_receiver": True, "receiver_approved_at": now}
        self._set_flags_while(
            booking_id, flag_values, sm.APPROVABLE_STATUSES, sm.check_approve, actor_id
        )

        flags = crud_booking.read_flags(self.db, booking.id)
        if flags is None:
            raise NotFoundError(f"Booking {booking_id} not found.")

        new_status = sm.status_for_approvals(flags.approved_by_sender, flags.approved_by_receiver)
        status_values: Dict[str, Any] = {"status": new_status.value}
        if new_status == BookingStatus.APPROVED_BY_BOTH:
            status_values["approved_at"] = now

        crud_booking.update_status_if_flags(
            self.db,
            booking.id,
            from_statuses=sm.APPROVABLE_STATUSES,
            approved_by_sender=flags.approved_by_sender,
            approved_by_receiver=flags.approved_by_receiver,
            values=status_values,
        )

        booking = self.get(booking_id)
        logger.info(f"Booking {booking.id}: {role.value} approved, status {booking.status}")

        if booking.status != old_status:
            self._audit(booking, actor_id, "approve", old_state=old_status,
                        new_state=booking.status, metadata={"party": role.value})

        if booking.status == BookingStatus.APPROVED_BY_BOTH.value and old_status != booking.status:
            self._emit(BOOKING_APPROVED, booking, actor_id)
            # Both receipts may already be in from before the second approval.
            if self._ready_for_auto_promotion(booking):
                booking = self._promote(booking, actor_id)
        elif not already_approved:
            self._emit(BOOKING_APPROVAL_RECORDED, booking, actor_id, party=role.value)
        return booking

    def acknowledge_agreement(self, booking_id: str, actor_id: str) -> Booking:
        """Record the caller's read receipt for the agreement summary."""
        booking = self.get(booking_id)
        role = sm.check_acknowledge_agreement(booking, actor_id)

        column = "sender_read_agreement" if role == PartyRole.SENDER else "receiver_read_agreement"
        self._set_flags_while(
            booking_id, {column: True}, sm.AGREEMENT_READABLE_STATUSES,
            sm.check_acknowledge_agreement, actor_id,
        )

        booking = self.get(booking_id)
        logger.info(f"Booking {booking.id}: agreement read by {role.value}")

        if self._ready_for_auto_promotion(booking):
            booking = self._promote(booking, actor_id)
        return booking

    def _set_flags_while(
        self, booking_id: str, values: Dict[str, Any], statuses, guard, actor_id: str
    ) -> None:
        """
        Write party flags only while the booking is still in `statuses`. When
        the status moved after the guard ran (e.g. the other party cancelled),
        the guard is re-run on a fresh read so the caller gets the typed error.
        """
        if crud_booking.set_columns(self.db, booking_id, values, from_statuses=statuses):
            return
        self.db.expire_all()
        booking = self.get(booking_id)
        guard(booking, actor_id)
        raise InvalidStateError(
            f"Booking {booking_id} changed status to '{booking.status}' during the update.",
            current_status=booking.status,
        )

    def promote_to_upcoming(self, booking_id: str, actor_id: Optional[str] = None) -> Booking:
        """approved_by_both -> upcoming. Manual promotion by a party, or by the scheduler."""
        booking = self._get_for_update(booking_id)
        if actor_id is not None:
            sm.require_party(booking, actor_id)
        sm.check_promote(booking, self.today(), self.require_agreement_read)
        return self._promote(booking, actor_id)

    def _ready_for_auto_promotion(self, booking: Booking) -> bool:
        # Without read receipts gating it, promotion stays a manual step.
        return self.require_agreement_read and (
            sm.promotion_blocker(booking, self.today(), self.require_agreement_read) is None
        )

    def _promote(self, booking: Booking, actor_id: Optional[str]) -> Booking:
        old_status = booking.status
        booking = crud_booking.update_fields(
            self.db, booking=booking, values={"status": BookingStatus.UPCOMING.value}
        )
        logger.info(f"Booking {booking.id} promoted to upcoming")

        self._audit(booking, actor_id, "promote", old_state=old_status, new_state=booking.status)
        self._emit(BOOKING_UPCOMING, booking, actor_id)
        return booking

    def complete(self, booking_id: str) -> Booking:
        """upcoming -> completed once the event date has passed."""
        booking = self._get_for_update(booking_id)
        sm.check_complete(booking, self.today())

        old_status = booking.status
        booking = crud_booking.update_fields(
            self.db,
            booking=booking,
            values={"status": BookingStatus.COMPLETED.value, "completed_at": self.clock()},
        )
        logger.info(f"Booking {booking.id} completed")

        self._audit(booking, None, "complete", old_state=old_status, new_state=booking.status)
        self._emit(BOOKING_COMPLETED, booking, None)
        return booking

    def cancel(self, booking_id: str, actor_id: str, reason: Optional[str] = None) -> Booking:
        """
        Soft delete of a negotiated booking. The record stays for both parties'
        history with private fields scrubbed and the public projection removed.
        """
        booking = self._get_for_update(booking_id)
        role = sm.check_cancel(booking, actor_id)

        old_status = booking.status
        now = self.clock()
        was_public = booking.is_public_after_approval

        crud_public_event.delete_for_booking(self.db, booking.id)
        crud_booking_change.redact_fields(self.db, booking_id=booking.id, field_names=SENSITIVE_FIELDS)

        values: Dict[str, Any] = {field: None for field in SENSITIVE_FIELDS}
        values.update(
            status=BookingStatus.CANCELLED.value,
            door_deal=False,
            by_agreement=False,
            is_public_after_approval=False,
            deletion_reason=reason,
            deleted_at=now,
            cancelled_at=now,
        )
        booking = crud_booking.update_fields(self.db, booking=booking, values=values)
        logger.info(f"Booking {booking.id} cancelled by {role.value} {actor_id}")

        self._audit(booking, actor_id, "cancel", old_state=old_status, new_state=booking.status,
                    metadata={"reason": reason, "was_public": was_public})
        self._emit(BOOKING_CANCELLED, booking, actor_id, reason=reason)
        return booking

    # ── Administrative procedures ────────────────────────────────────

    def reject_pending(self, booking_id: str, actor_id: str) -> None:
        """
        Permanently remove a still-pending request with all dependent rows.
        Fails instead of silently doing nothing when the booking is not pending.
        """
        booking = self._get_for_update(booking_id)
        sm.check_reject(booking, actor_id)

        event = BookingEvent.for_booking(BOOKING_REJECTED, booking, actor_id)
        crud_booking.delete(self.db, booking=booking)
        logger.info(f"Booking request {booking_id} rejected and purged by {actor_id}")
        self.dispatcher.emit(event)

    def purge(self, booking_id: str, actor_id: Optional[str] = None, is_admin: bool = False) -> None:
        """
        Remove a booking regardless of status, cascading to proposals,
        attachments, audit entries and the public projection. Purging an
        id that no longer exists raises NotFoundError.
        """
        if not is_admin:
            raise WrongPartyError("Only administrators can permanently delete bookings.")

        booking = self._get_for_update(booking_id)
        event = BookingEvent.for_booking(BOOKING_PURGED, booking, actor_id, status=booking.status)
        crud_booking.delete(self.db, booking=booking)
        logger.warning(f"Booking {booking_id} permanently purged by {actor_id or 'internal caller'}")
        self.dispatcher.emit(event)

    # ── Time-based transitions ───────────────────────────────────────

    def promote_due(self) -> List[str]:
        """Promote every approved booking whose receipts and date allow it."""
        promoted = []
        for booking in crud_booking.list_due_for_promotion(self.db, self.today()):
            if not self._ready_for_auto_promotion(booking):
                continue
            self._promote(booking, None)
            promoted.append(booking.id)
        return promoted

    def complete_due(self) -> List[str]:
        completed = []
        for booking in crud_booking.list_due_for_completion(self.db, self.today()):
            self.complete(booking.id)
            completed.append(booking.id)
        return completed

    # ── History ──────────────────────────────────────────────────────

    def audit_log(self, booking_id: str, actor_id: str, is_admin: bool = False):
        booking = self.get(booking_id, actor_id=actor_id, is_admin=is_admin)
        return crud_booking_audit_log.get_audit_log_for_booking(self.db, booking.id)

    # ── Helpers ──────────────────────────────────────────────────────

    def _get_for_update(self, booking_id: str) -> Booking:
        booking = crud_booking.get_for_update(self.db, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        return booking

    def _audit(self, booking: Booking, actor_id: Optional[str], action: str, **kwargs) -> None:
        crud_booking_audit_log.create_audit_entry(
            self.db, booking_id=booking.id, user_id=actor_id, action=action, **kwargs
        )

    def _emit(self, event_type: str, booking: Booking, actor_id: Optional[str], **data) -> None:
        self.dispatcher.emit(BookingEvent.for_booking(event_type, booking, actor_id, **data))
