# booking_engine/services/booking_state_machine.py
"""
Pure transition rules for the booking lifecycle.

    pending -> allowed -> {approved_by_sender, approved_by_receiver}
            -> approved_by_both -> upcoming -> completed

`cancelled` is reachable from every negotiated, non-terminal state. Rejecting
a `pending` request is not a transition at all: the booking is purged.

Nothing in here touches the database. Guards raise typed errors describing
the violated precondition; callers must not retry them automatically.
"""
from datetime import date
from typing import Optional

from booking_engine.core.exceptions import InvalidStateError, WrongPartyError
from booking_engine.schemas.booking import BookingStatus, PartyRole

S = BookingStatus

# Proposals and field updates are accepted only here.
EDITABLE_STATUSES = frozenset({
    S.ALLOWED, S.APPROVED_BY_SENDER, S.APPROVED_BY_RECEIVER,
})
# Individual approvals may be recorded only while terms are negotiable.
APPROVABLE_STATUSES = EDITABLE_STATUSES
# Read receipts are collected until the booking is promoted.
AGREEMENT_READABLE_STATUSES = EDITABLE_STATUSES | {S.APPROVED_BY_BOTH}
TERMINAL_STATUSES = frozenset({S.COMPLETED, S.CANCELLED})
CANCELLABLE_STATUSES = frozenset({
    S.ALLOWED, S.APPROVED_BY_SENDER, S.APPROVED_BY_RECEIVER,
    S.APPROVED_BY_BOTH, S.UPCOMING,
})
# "approved_by_both or later" for publication purposes.
MUTUALLY_APPROVED_STATUSES = frozenset({
    S.APPROVED_BY_BOTH, S.UPCOMING, S.COMPLETED,
})
ACTIVE_STATUSES = frozenset({
    S.PENDING, S.ALLOWED, S.APPROVED_BY_SENDER, S.APPROVED_BY_RECEIVER,
    S.APPROVED_BY_BOTH, S.UPCOMING,
})

VALID_TRANSITIONS = {
    S.PENDING: {S.ALLOWED},
    S.ALLOWED: {S.APPROVED_BY_SENDER, S.APPROVED_BY_RECEIVER, S.APPROVED_BY_BOTH, S.CANCELLED},
    S.APPROVED_BY_SENDER: {S.APPROVED_BY_BOTH, S.ALLOWED, S.CANCELLED},
    S.APPROVED_BY_RECEIVER: {S.APPROVED_BY_BOTH, S.ALLOWED, S.CANCELLED},
    S.APPROVED_BY_BOTH: {S.UPCOMING, S.CANCELLED},
    S.UPCOMING: {S.COMPLETED, S.CANCELLED},
    # Terminal states have no outgoing transitions
}


def as_status(value) -> BookingStatus:
    return value if isinstance(value, BookingStatus) else BookingStatus(value)


def can_transition(current, new) -> bool:
    return as_status(new) in VALID_TRANSITIONS.get(as_status(current), set())


def is_terminal(status) -> bool:
    return as_status(status) in TERMINAL_STATUSES


def is_editable(status) -> bool:
    return as_status(status) in EDITABLE_STATUSES


def party_role(booking, user_id: str) -> Optional[PartyRole]:
    if user_id and user_id == booking.sender_id:
        return PartyRole.SENDER
    if user_id and user_id == booking.receiver_id:
        return PartyRole.RECEIVER
    return None


def require_party(booking, user_id: str) -> PartyRole:
    role = party_role(booking, user_id)
    if role is None:
        raise WrongPartyError("Only the sender or the receiver may act on this booking.")
    return role


def other_party_id(booking, user_id: str) -> str:
    return booking.receiver_id if user_id == booking.sender_id else booking.sender_id


def status_for_approvals(approved_by_sender: bool, approved_by_receiver: bool) -> BookingStatus:
    """Derive the negotiation status from the two independent approval flags."""
    if approved_by_sender and approved_by_receiver:
        return S.APPROVED_BY_BOTH
    if approved_by_sender:
        return S.APPROVED_BY_SENDER
    if approved_by_receiver:
        return S.APPROVED_BY_RECEIVER
    return S.ALLOWED


def _ensure_status(booking, allowed, action: str) -> BookingStatus:
    current = as_status(booking.status)
    if current in TERMINAL_STATUSES:
        raise InvalidStateError(
            f"Cannot {action}: booking is {current.value} and can no longer change.",
            current_status=current.value,
        )
    if current not in allowed:
        raise InvalidStateError(
            f"Cannot {action} a booking with status '{current.value}'.",
            current_status=current.value,
        )
    return current


def ensure_editable(booking) -> BookingStatus:
    return _ensure_status(booking, EDITABLE_STATUSES, "change terms of")


def check_accept(booking, actor_id: str) -> None:
    role = require_party(booking, actor_id)
    if role != PartyRole.RECEIVER:
        raise WrongPartyError("Only the receiver can accept a booking request.")
    _ensure_status(booking, {S.PENDING}, "accept")


def check_approve(booking, actor_id: str) -> PartyRole:
    role = require_party(booking, actor_id)
    _ensure_status(booking, APPROVABLE_STATUSES, "approve")
    return role


def check_acknowledge_agreement(booking, actor_id: str) -> PartyRole:
    role = require_party(booking, actor_id)
    _ensure_status(booking, AGREEMENT_READABLE_STATUSES, "acknowledge the agreement of")
    return role


def check_cancel(booking, actor_id: str) -> PartyRole:
    role = require_party(booking, actor_id)
    if as_status(booking.status) == S.PENDING:
        raise InvalidStateError(
            "A pending request cannot be cancelled; reject it instead.",
            current_status=S.PENDING.value,
        )
    _ensure_status(booking, CANCELLABLE_STATUSES, "cancel")
    return role


def check_reject(booking, actor_id: str) -> PartyRole:
    role = require_party(booking, actor_id)
    current = as_status(booking.status)
    if current != S.PENDING:
        raise InvalidStateError(
            f"Only pending requests can be rejected; this booking is '{current.value}'.",
            current_status=current.value,
        )
    return role


def promotion_blocker(booking, today: date, require_read: bool) -> Optional[str]:
    """Return why an approved booking cannot become upcoming, or None."""
    if as_status(booking.status) != S.APPROVED_BY_BOTH:
        return f"booking is '{as_status(booking.status).value}', not approved_by_both"
    if booking.event_date is None:
        return "event date is not set"
    if booking.event_date < today:
        return "event date has already passed"
    if require_read and not (booking.sender_read_agreement and booking.receiver_read_agreement):
        return "both parties must read the agreement first"
    return None


def check_promote(booking, today: date, require_read: bool) -> None:
    _ensure_status(booking, {S.APPROVED_BY_BOTH}, "promote")
    reason = promotion_blocker(booking, today, require_read)
    if reason:
        raise InvalidStateError(
            f"Cannot promote to upcoming: {reason}.", current_status=booking.status
        )


def check_complete(booking, today: date) -> None:
    _ensure_status(booking, {S.UPCOMING}, "complete")
    if booking.event_date is None or booking.event_date >= today:
        raise InvalidStateError(
            "Cannot complete a booking before its event date has passed.",
            current_status=booking.status,
        )


def check_publish(booking, actor_id: str) -> PartyRole:
    role = require_party(booking, actor_id)
    current = as_status(booking.status)
    if current not in MUTUALLY_APPROVED_STATUSES or booking.approved_at is None:
        raise InvalidStateError(
            "Only bookings approved by both parties can be published.",
            current_status=current.value,
        )
    return role


def check_attach(booking, actor_id: str) -> PartyRole:
    role = require_party(booking, actor_id)
    _ensure_status(booking, CANCELLABLE_STATUSES, "attach media to")
    return role
