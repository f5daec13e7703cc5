"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from booking_api.models.booking import MAX_TICKETS_PER_BOOKING, BookingStatus
from booking_api.schemas.common import Pagination
from booking_api.schemas.event import EventSummary


class BookingCreate(BaseModel):
    event_id: int = Field(..., ge=1)
    number_of_tickets: int = Field(..., ge=1, le=MAX_TICKETS_PER_BOOKING)


class BookingCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(BaseModel):
    id: int
    user_id: int
    event_id: int
    number_of_tickets: int
    total_amount: Decimal
    status: BookingStatus
    booking_date: datetime
    cancellation_date: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    event: Optional[EventSummary] = None

    model_config = {"from_attributes": True}


class BookingListPayload(BaseModel):
    bookings: list[BookingResponse]
    pagination: Pagination
