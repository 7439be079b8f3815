from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from booking_engine.core.exceptions import InvalidStateError, WrongPartyError
from booking_engine.schemas.booking import BookingStatus, PartyRole
from booking_engine.services import booking_state_machine as sm

TODAY = date(2026, 6, 1)


def make_booking(status="allowed", **overrides):
    data = {
        "sender_id": "alice",
        "receiver_id": "bob",
        "status": status,
        "event_date": TODAY + timedelta(days=10),
        "approved_at": None,
        "sender_read_agreement": False,
        "receiver_read_agreement": False,
    }
    data.update(overrides)
    return SimpleNamespace(**data)


@pytest.mark.parametrize(
    "sender, receiver, expected",
    [
        (False, False, BookingStatus.ALLOWED),
        (True, False, BookingStatus.APPROVED_BY_SENDER),
        (False, True, BookingStatus.APPROVED_BY_RECEIVER),
        (True, True, BookingStatus.APPROVED_BY_BOTH),
    ],
)
def test_status_for_approvals(sender, receiver, expected):
    assert sm.status_for_approvals(sender, receiver) == expected


def test_transition_table():
    assert sm.can_transition("pending", "allowed")
    assert sm.can_transition("approved_by_sender", "approved_by_both")
    assert sm.can_transition("upcoming", "completed")
    assert not sm.can_transition("pending", "cancelled")
    assert not sm.can_transition("approved_by_both", "allowed")
    assert not sm.can_transition("cancelled", "allowed")
    assert not sm.can_transition("completed", "cancelled")


def test_editable_statuses():
    assert sm.is_editable("allowed")
    assert sm.is_editable("approved_by_receiver")
    assert not sm.is_editable("pending")
    assert not sm.is_editable("approved_by_both")
    assert sm.is_terminal("completed") and sm.is_terminal("cancelled")


def test_party_role():
    booking = make_booking()
    assert sm.party_role(booking, "alice") == PartyRole.SENDER
    assert sm.party_role(booking, "bob") == PartyRole.RECEIVER
    assert sm.party_role(booking, "mallory") is None
    assert sm.other_party_id(booking, "alice") == "bob"

    with pytest.raises(WrongPartyError):
        sm.require_party(booking, "mallory")


def test_only_receiver_accepts():
    booking = make_booking(status="pending")
    sm.check_accept(booking, "bob")

    with pytest.raises(WrongPartyError):
        sm.check_accept(booking, "alice")


def test_accept_requires_pending():
    with pytest.raises(InvalidStateError) as exc_info:
        sm.check_accept(make_booking(status="allowed"), "bob")
    assert exc_info.value.current_status == "allowed"


def test_terminal_state_blocks_edits():
    for status in ("completed", "cancelled"):
        with pytest.raises(InvalidStateError, match="can no longer change"):
            sm.ensure_editable(make_booking(status=status))


def test_frozen_after_mutual_approval():
    with pytest.raises(InvalidStateError):
        sm.ensure_editable(make_booking(status="approved_by_both"))
    with pytest.raises(InvalidStateError):
        sm.check_approve(make_booking(status="approved_by_both"), "alice")


def test_cancel_guards():
    assert sm.check_cancel(make_booking(status="upcoming"), "bob") == PartyRole.RECEIVER

    with pytest.raises(InvalidStateError, match="reject it instead"):
        sm.check_cancel(make_booking(status="pending"), "alice")
    with pytest.raises(InvalidStateError):
        sm.check_cancel(make_booking(status="completed"), "alice")
    with pytest.raises(WrongPartyError):
        sm.check_cancel(make_booking(status="allowed"), "mallory")


def test_reject_only_pending():
    assert sm.check_reject(make_booking(status="pending"), "alice") == PartyRole.SENDER

    with pytest.raises(InvalidStateError, match="Only pending requests"):
        sm.check_reject(make_booking(status="allowed"), "bob")


def test_promotion_blockers():
    booking = make_booking(status="approved_by_both")
    assert "read the agreement" in sm.promotion_blocker(booking, TODAY, require_read=True)
    assert sm.promotion_blocker(booking, TODAY, require_read=False) is None

    booking.sender_read_agreement = booking.receiver_read_agreement = True
    assert sm.promotion_blocker(booking, TODAY, require_read=True) is None

    booking.event_date = TODAY - timedelta(days=1)
    assert "passed" in sm.promotion_blocker(booking, TODAY, require_read=True)

    with pytest.raises(InvalidStateError, match="Cannot promote"):
        sm.check_promote(booking, TODAY, require_read=True)


def test_complete_only_after_event_date():
    booking = make_booking(status="upcoming", event_date=TODAY)
    with pytest.raises(InvalidStateError):
        sm.check_complete(booking, TODAY)

    sm.check_complete(booking, TODAY + timedelta(days=1))


def test_publish_requires_mutual_approval():
    with pytest.raises(InvalidStateError):
        sm.check_publish(make_booking(status="allowed"), "alice")
    with pytest.raises(InvalidStateError):
        sm.check_publish(make_booking(status="cancelled", approved_at=TODAY), "alice")

    for status in ("approved_by_both", "upcoming", "completed"):
        sm.check_publish(make_booking(status=status, approved_at=TODAY), "alice")
