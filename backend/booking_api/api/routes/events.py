"""
Event endpoints with Redis caching on the public listing.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.api.deps import get_current_user, get_ledger, require_admin
from booking_api.core.logging import get_logger
from booking_api.db.session import get_db
from booking_api.models.user import User
from booking_api.schemas.common import ApiResponse, PageParams, Pagination
from booking_api.schemas.event import (
    EventCreate,
    EventFilters,
    EventListPayload,
    EventResponse,
    EventUpdate,
)
from booking_api.services import event_service
from booking_api.services.cache_service import (
    get_cached_events,
    invalidate_event_cache,
    make_event_list_key,
    set_cached_events,
)
from booking_api.services.seat_ledger import SeatLedger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


def _page(events, params: PageParams, total: int) -> EventListPayload:
    return EventListPayload(
        events=[EventResponse.model_validate(e) for e in events],
        pagination=Pagination.build(params, total),
    )


@router.get("/", response_model=ApiResponse[EventListPayload])
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[str] = Query(None, max_length=50),
    location: Optional[str] = Query(None, max_length=200),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    search: Optional[str] = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    """
    List active events with filters and pagination.
    Results are cached in Redis; seat counts shown here may trail bookings
    in flight.
    """
    params = PageParams(page=page, limit=limit)
    filters = EventFilters(
        category=category,
        location=location,
        start_date=start_date,
        end_date=end_date,
        min_price=min_price,
        max_price=max_price,
        search=search,
    )

    cache_key = make_event_list_key(page, limit, filters.cache_key_part())
    cached = await get_cached_events(cache_key)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        payload = EventListPayload(**cached)
        payload.cached = True
        return ApiResponse(message="Events retrieved successfully", data=payload)

    events, total = await event_service.list_events(db, params, filters)
    payload = _page(events, params, total)
    await set_cached_events(cache_key, payload.model_dump(mode="json"))

    return ApiResponse(message="Events retrieved successfully", data=payload)


@router.get("/mine", response_model=ApiResponse[EventListPayload])
async def list_my_events(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Events created by the caller, including soft-deleted ones."""
    params = PageParams(page=page, limit=limit)
    events, total = await event_service.list_creator_events(db, user.id, params)
    return ApiResponse(message="Your events retrieved successfully", data=_page(events, params, total))


@router.get("/{event_id}", response_model=ApiResponse[EventResponse])
async def get_event_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Get a single active event. Not cached."""
    event = await event_service.get_event(db, event_id)
    return ApiResponse(message="Event retrieved successfully", data=EventResponse.model_validate(event))


@router.post("/", response_model=ApiResponse[EventResponse], status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Publish a new event. Admin only."""
    event = await event_service.create_event(db, event_data, user.id)
    await invalidate_event_cache()
    return ApiResponse(message="Event created successfully", data=EventResponse.model_validate(event))


@router.put("/{event_id}", response_model=ApiResponse[EventResponse])
async def update_event_endpoint(
    event_id: int,
    changes: EventUpdate,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    ledger: SeatLedger = Depends(get_ledger),
):
    event = await event_service.update_event(db, ledger, event_id, changes, user)
    await invalidate_event_cache()
    return ApiResponse(message="Event updated successfully", data=EventResponse.model_validate(event))


@router.delete("/{event_id}", response_model=ApiResponse)
async def delete_event_endpoint(
    event_id: int,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    ledger: SeatLedger = Depends(get_ledger),
):
    """Soft-delete an event without confirmed bookings."""
    await event_service.delete_event(db, ledger, event_id, user)
    await invalidate_event_cache()
    return ApiResponse(message="Event deleted successfully")
