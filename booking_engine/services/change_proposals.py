# booking_engine/services/change_proposals.py
"""
Field-level change proposals.

A proposal commits on submit: the new value is written to the booking and
the proposal is appended to the log in the same transaction. The only guard
against two parties editing the same field at once is the optimistic check
of `old_value` against the stored value.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from booking_engine.core.exceptions import ConflictError, NotFoundError
from booking_engine.crud import crud_booking, crud_booking_change
from booking_engine.models.booking_change import BookingChange
from booking_engine.schemas.booking import PartyRole, ProposalCreate
from booking_engine.services import booking_state_machine as sm
from booking_engine.services.booking_events import BookingEventDispatcher
from booking_engine.services.booking_lifecycle import BookingLifecycleService
from booking_engine.utils import booking_fields

logger = logging.getLogger(__name__)


class ChangeProposalService:
    def __init__(
        self,
        db: Session,
        dispatcher: Optional[BookingEventDispatcher] = None,
        lifecycle: Optional[BookingLifecycleService] = None,
    ):
        self.db = db
        self.lifecycle = lifecycle or BookingLifecycleService(db, dispatcher)

    def propose(self, booking_id: str, proposal: ProposalCreate, proposed_by: str) -> BookingChange:
        booking = crud_booking.get_for_update(self.db, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")

        role = sm.require_party(booking, proposed_by)
        sm.ensure_editable(booking)

        field_name = proposal.field_name
        current = booking_fields.current_field_text(booking, field_name)
        expected = booking_fields.canonical_text(field_name, proposal.old_value)
        if expected != current:
            self.db.rollback()
            logger.info(
                f"Stale proposal on booking {booking_id}.{field_name} by {proposed_by}: "
                f"expected {expected!r}, found {current!r}"
            )
            raise ConflictError(
                f"'{field_name}' changed since you last viewed it.",
                field_name=field_name,
                current_value=current,
            )

        new_value = booking_fields.parse_field_value(field_name, proposal.new_value)
        booking_fields.validate_against_booking(booking, field_name, new_value)

        change = crud_booking_change.append(
            self.db,
            booking_id=booking.id,
            field_name=field_name,
            old_value=current,
            new_value=booking_fields.serialize_field_value(new_value),
            proposed_by=proposed_by,
            proposer_is_sender=role == PartyRole.SENDER,
        )
        booking, reset = self.lifecycle.write_field(booking, field_name, new_value, proposed_by)
        self.db.refresh(change)

        logger.info(f"Booking {booking.id}: {role.value} changed {field_name} ({change.id})")
        self.lifecycle.after_field_write(booking, field_name, proposed_by, reset)
        return change

    def list_proposals(self, booking_id: str, actor_id: str, is_admin: bool = False) -> List[BookingChange]:
        booking = self.lifecycle.get(booking_id, actor_id=actor_id, is_admin=is_admin)
        return crud_booking_change.list_for_booking(self.db, booking.id)

    def acknowledge_changes(self, booking_id: str, actor_id: str) -> int:
        """Mark all logged changes as seen by the caller. Returns how many were new."""
        booking = self.lifecycle.get(booking_id)
        role = sm.require_party(booking, actor_id)
        count = crud_booking_change.acknowledge_all(
            self.db, booking_id=booking.id, as_sender=role == PartyRole.SENDER
        )
        if count:
            logger.info(f"Booking {booking.id}: {count} change(s) acknowledged by {role.value}")
        return count
