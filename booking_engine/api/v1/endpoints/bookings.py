# booking_engine/api/v1/endpoints/bookings.py
"""Party-facing booking negotiation endpoints."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status

from booking_engine.api import deps
from booking_engine.models.booking import Booking
from booking_engine.schemas.booking import (
    BookingAuditLogRead,
    BookingChangeRead,
    BookingCreate,
    BookingRead,
    BookingStatus,
    CancelBookingRequest,
    FieldUpdateRequest,
    PartyRole,
    PortfolioAttachmentCreate,
    PortfolioAttachmentRead,
    ProposalCreate,
)
from booking_engine.schemas.public_event import PublicEventRead
from booking_engine.schemas.token import TokenPayload
from booking_engine.services.booking_lifecycle import BookingLifecycleService
from booking_engine.services.change_proposals import ChangeProposalService
from booking_engine.services.publication_gate import PublicationGate
from booking_engine.utils import booking_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ── Helpers ───────────────────────────────────────────────────────────


def _booking_to_dict(booking: Booking) -> dict:
    """Shape a booking row for BookingRead: coordinates and pricing are derived."""
    data = {
        column.name: getattr(booking, column.name)
        for column in Booking.__table__.columns
    }
    data.pop("latitude")
    data.pop("longitude")
    data["coordinates"] = booking.coordinates
    data["concept_ids"] = data.get("concept_ids") or []
    data["pricing_mode"] = booking_fields.resolve_pricing_mode(booking)
    data["pricing_summary"] = booking_fields.pricing_summary(booking)
    return data


# ── Store ─────────────────────────────────────────────────────────────


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_in: BookingCreate,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    """
    Send a booking request. The caller becomes the sender.
    """
    booking = service.create(current_user.sub, booking_in)
    return _booking_to_dict(booking)


@router.get("", response_model=List[BookingRead])
def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    role: Optional[PartyRole] = Query(None),
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    """List bookings where the caller is sender or receiver, newest first."""
    bookings = service.list_for_party(
        current_user.sub,
        status=status_filter.value if status_filter else None,
        role=role.value if role else None,
    )
    return [_booking_to_dict(b) for b in bookings]


@router.get("/{bookingId}", response_model=BookingRead)
def get_booking(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    booking = service.get(bookingId, actor_id=current_user.sub, is_admin=current_user.is_admin)
    return _booking_to_dict(booking)


@router.patch("/{bookingId}/fields", response_model=BookingRead)
def update_booking_field(
    bookingId: str,
    update_in: FieldUpdateRequest,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    booking = service.apply_field_update(
        bookingId, update_in.field_name, update_in.value, current_user.sub
    )
    return _booking_to_dict(booking)


# ── Transitions ───────────────────────────────────────────────────────


@router.post("/{bookingId}/accept", response_model=BookingRead)
def accept_booking(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    """Receiver accepts a pending request and opens negotiation."""
    return _booking_to_dict(service.accept(bookingId, current_user.sub))


@router.post("/{bookingId}/approve", response_model=BookingRead)
def approve_booking(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    return _booking_to_dict(service.approve(bookingId, current_user.sub))


@router.post("/{bookingId}/acknowledge-agreement", response_model=BookingRead)
def acknowledge_agreement(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    return _booking_to_dict(service.acknowledge_agreement(bookingId, current_user.sub))


@router.post("/{bookingId}/promote", response_model=BookingRead)
def promote_booking(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    return _booking_to_dict(service.promote_to_upcoming(bookingId, current_user.sub))


@router.post("/{bookingId}/cancel", response_model=BookingRead)
def cancel_booking(
    bookingId: str,
    cancel_in: Optional[CancelBookingRequest] = None,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    """
    Cancel a negotiated booking. The record is kept, redacted, in both
    parties' history.
    """
    reason = cancel_in.reason if cancel_in else None
    return _booking_to_dict(service.cancel(bookingId, current_user.sub, reason=reason))


@router.post("/{bookingId}/reject", status_code=status.HTTP_204_NO_CONTENT)
def reject_booking(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    """
    Decline a pending request. The request is permanently deleted.
    """
    service.reject_pending(bookingId, current_user.sub)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Publication ───────────────────────────────────────────────────────


@router.post("/{bookingId}/publish", response_model=PublicEventRead)
def publish_booking(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    gate: PublicationGate = Depends(deps.get_publication_gate),
):
    return gate.publish(bookingId, current_user.sub)


@router.post("/{bookingId}/unpublish", response_model=BookingRead)
def unpublish_booking(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    gate: PublicationGate = Depends(deps.get_publication_gate),
):
    return _booking_to_dict(gate.unpublish(bookingId, current_user.sub))


# ── Proposals ─────────────────────────────────────────────────────────


@router.post(
    "/{bookingId}/proposals",
    response_model=BookingChangeRead,
    status_code=status.HTTP_201_CREATED,
)
def create_proposal(
    bookingId: str,
    proposal_in: ProposalCreate,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: ChangeProposalService = Depends(deps.get_proposal_service),
):
    """
    Propose a field change. The change is applied immediately; a stale
    old_value is rejected with 409 stale_proposal.
    """
    return service.propose(bookingId, proposal_in, current_user.sub)


@router.get("/{bookingId}/proposals", response_model=List[BookingChangeRead])
def list_proposals(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: ChangeProposalService = Depends(deps.get_proposal_service),
):
    return service.list_proposals(bookingId, current_user.sub, is_admin=current_user.is_admin)


@router.post("/{bookingId}/proposals/acknowledge")
def acknowledge_proposals(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: ChangeProposalService = Depends(deps.get_proposal_service),
):
    count = service.acknowledge_changes(bookingId, current_user.sub)
    return {"acknowledged": count}


# ── Attachments ───────────────────────────────────────────────────────


@router.post(
    "/{bookingId}/attachments",
    response_model=PortfolioAttachmentRead,
    status_code=status.HTTP_201_CREATED,
)
def attach_portfolio_file(
    bookingId: str,
    attachment_in: PortfolioAttachmentCreate,
    current_user: TokenPayload = Depends(deps.get_current_user),
    gate: PublicationGate = Depends(deps.get_publication_gate),
):
    return gate.attach_portfolio_file(bookingId, current_user.sub, attachment_in)


@router.get("/{bookingId}/attachments", response_model=List[PortfolioAttachmentRead])
def list_attachments(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    gate: PublicationGate = Depends(deps.get_publication_gate),
):
    return gate.list_attachments(bookingId, current_user.sub, is_admin=current_user.is_admin)


@router.delete("/{bookingId}/attachments/{attachmentId}", status_code=status.HTTP_204_NO_CONTENT)
def detach_portfolio_file(
    bookingId: str,
    attachmentId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    gate: PublicationGate = Depends(deps.get_publication_gate),
):
    gate.detach_portfolio_file(bookingId, attachmentId, current_user.sub)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── History ───────────────────────────────────────────────────────────


@router.get("/{bookingId}/audit-log", response_model=List[BookingAuditLogRead])
def get_audit_log(
    bookingId: str,
    current_user: TokenPayload = Depends(deps.get_current_user),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    return service.audit_log(bookingId, current_user.sub, is_admin=current_user.is_admin)
