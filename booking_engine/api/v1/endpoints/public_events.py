# booking_engine/api/v1/endpoints/public_events.py
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from booking_engine.api import deps
from booking_engine.schemas.public_event import PublicEventRead
from booking_engine.services.publication_gate import PublicationGate

router = APIRouter(prefix="/public/events", tags=["Public"])


@router.get("", response_model=List[PublicEventRead])
def list_public_events(
    from_date: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    gate: PublicationGate = Depends(deps.get_publication_gate),
):
    """
    Lists published events, soonest first. No authentication required.
    """
    return gate.list_public_events(from_date=from_date, skip=skip, limit=limit)


@router.get("/{publicEventId}", response_model=PublicEventRead)
def get_public_event(
    publicEventId: str,
    gate: PublicationGate = Depends(deps.get_publication_gate),
):
    """
    Retrieves the publicly viewable details of a single published event.
    """
    return gate.get_public_event(publicEventId)
