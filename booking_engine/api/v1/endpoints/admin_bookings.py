# booking_engine/api/v1/endpoints/admin_bookings.py
"""Administrative booking procedures."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Response, status

from booking_engine.api import deps
from booking_engine.schemas.token import TokenPayload
from booking_engine.services.booking_lifecycle import BookingLifecycleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/bookings", tags=["Admin Bookings"])


@router.delete("/{bookingId}", status_code=status.HTTP_204_NO_CONTENT)
def purge_booking(
    bookingId: str,
    admin: Optional[TokenPayload] = Depends(deps.require_admin_or_internal),
    service: BookingLifecycleService = Depends(deps.get_lifecycle_service),
):
    """
    Permanently delete a booking in any status, together with its proposals,
    attachments, audit trail and public listing. Purging an id that no longer
    exists returns 404.
    """
    service.purge(bookingId, actor_id=admin.sub if admin else None, is_admin=True)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
