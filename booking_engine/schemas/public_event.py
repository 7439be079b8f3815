# booking_engine/schemas/public_event.py
"""
Public-facing shapes. These are served to unauthenticated readers, so every
field here must also be on the publication allow-list.
"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime, date


class PublicMedia(BaseModel):
    id: str
    title: Optional[str] = None
    file_url: str
    mime_type: Optional[str] = None


class PerformerSummary(BaseModel):
    id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None


class PublicEventRead(BaseModel):
    id: str
    booking_id: str
    title: str
    description: Optional[str] = None
    event_date: Optional[date] = None
    time: Optional[str] = None
    venue: Optional[str] = None
    ticket_price: Optional[float] = None
    audience_estimate: Optional[int] = None
    media: List[PublicMedia] = []
    performer: Optional[PerformerSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
