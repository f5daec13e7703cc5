"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator

from booking_api.schemas.common import Pagination


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EventCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    date: datetime
    location: str = Field(..., min_length=5, max_length=200)
    total_seats: int = Field(..., ge=1, le=100000)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    category: Optional[str] = Field(None, max_length=50)
    image_url: Optional[HttpUrl] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: datetime) -> datetime:
        return _to_utc(value)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    date: Optional[datetime] = None
    location: Optional[str] = Field(None, min_length=5, max_length=200)
    total_seats: Optional[int] = Field(None, ge=1, le=100000)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    category: Optional[str] = Field(None, max_length=50)
    image_url: Optional[HttpUrl] = None

    @field_validator("date")
    @classmethod
    def normalize_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_utc(value) if value is not None else None


class EventFilters(BaseModel):
    category: Optional[str] = Field(None, max_length=50)
    location: Optional[str] = Field(None, max_length=200)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    search: Optional[str] = Field(None, max_length=200)

    def cache_key_part(self) -> str:
        return "&".join(
            f"{name}={value}"
            for name, value in sorted(self.model_dump(exclude_none=True).items())
        )


class EventSummary(BaseModel):
    id: int
    title: str
    date: datetime
    location: str
    price: Decimal

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    id: int
    title: str
    description: str
    date: datetime
    location: str
    category: Optional[str]
    image_url: Optional[str]
    total_seats: int
    available_seats: int
    price: Decimal
    is_active: bool
    creator_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListPayload(BaseModel):
    events: list[EventResponse]
    pagination: Pagination
    cached: bool = False
