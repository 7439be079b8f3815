# booking_engine/schemas/booking.py
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# --- Enums ---

class BookingStatus(str, Enum):
    PENDING = "pending"
    ALLOWED = "allowed"
    APPROVED_BY_SENDER = "approved_by_sender"
    APPROVED_BY_RECEIVER = "approved_by_receiver"
    APPROVED_BY_BOTH = "approved_by_both"
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PricingMode(str, Enum):
    ARTIST_FEE = "artist_fee"
    DOOR_DEAL = "door_deal"
    BY_AGREEMENT = "by_agreement"


class PartyRole(str, Enum):
    SENDER = "sender"
    RECEIVER = "receiver"


# Column limits: Numeric(12, 2) and a 32-bit Integer.
MAX_AMOUNT = Decimal("9999999999.99")
MAX_COUNT = 2**31 - 1


# --- Create ---

class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class BookingCreate(BaseModel):
    receiver_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    event_date: Optional[date] = None
    end_date: Optional[date] = None
    time: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    venue: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    audience_estimate: Optional[int] = Field(None, ge=0, le=MAX_COUNT)
    ticket_price: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    artist_fee: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    door_deal: bool = False
    door_percentage: Optional[int] = Field(None, ge=0, le=100)
    by_agreement: bool = False
    personal_message: Optional[str] = None
    sender_contact_info: Optional[Dict[str, Any]] = None
    hospitality_rider: Optional[str] = None
    tech_spec: Optional[str] = None
    concept_ids: List[str] = []
    selected_concept_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_ranges(self):
        if self.event_date and self.end_date and self.event_date > self.end_date:
            raise ValueError("event_date must be <= end_date")
        if self.door_deal and self.by_agreement:
            raise ValueError("door_deal and by_agreement are mutually exclusive")
        if (
            self.selected_concept_id
            and self.concept_ids
            and self.selected_concept_id not in self.concept_ids
        ):
            raise ValueError("selected_concept_id must be one of concept_ids")
        return self


# --- Requests ---

class FieldUpdateRequest(BaseModel):
    field_name: str
    value: Optional[str] = None


class ProposalCreate(BaseModel):
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class PortfolioAttachmentCreate(BaseModel):
    portfolio_file_id: str = Field(..., min_length=1)
    file_url: str = Field(..., min_length=1)
    title: Optional[str] = None
    mime_type: Optional[str] = None


# --- Response shapes ---

class BookingRead(BaseModel):
    id: str
    sender_id: str
    receiver_id: str
    title: str
    description: Optional[str] = None
    event_date: Optional[date] = None
    end_date: Optional[date] = None
    time: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    venue: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    audience_estimate: Optional[int] = None
    ticket_price: Optional[float] = None
    artist_fee: Optional[float] = None
    door_deal: bool = False
    door_percentage: Optional[int] = None
    by_agreement: bool = False
    pricing_mode: PricingMode
    pricing_summary: str
    personal_message: Optional[str] = None
    sender_contact_info: Optional[Dict[str, Any]] = None
    hospitality_rider: Optional[str] = None
    tech_spec: Optional[str] = None
    concept_ids: List[str] = []
    selected_concept_id: Optional[str] = None
    status: BookingStatus
    approved_by_sender: bool
    approved_by_receiver: bool
    sender_read_agreement: bool
    receiver_read_agreement: bool
    is_public_after_approval: bool
    allowed_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    deletion_reason: Optional[str] = None
    deleted_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    last_modified_by: Optional[str] = None
    last_modified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingChangeRead(BaseModel):
    id: str
    booking_id: str
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    proposed_by: str
    acknowledged_by_sender: bool
    acknowledged_by_receiver: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PortfolioAttachmentRead(BaseModel):
    id: str
    booking_id: str
    portfolio_file_id: str
    title: Optional[str] = None
    file_url: str
    mime_type: Optional[str] = None
    attached_by: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingAuditLogRead(BaseModel):
    id: str
    booking_id: str
    user_id: Optional[str] = None
    action: str
    old_state: Optional[str] = None
    new_state: Optional[str] = None
    action_metadata: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = {"from_attributes": True}
