"""
Booking endpoints. Writes go through the seat ledger; reads do not lock.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.api.deps import get_current_user, get_ledger, require_admin
from booking_api.db.session import get_db
from booking_api.models.booking import BookingStatus
from booking_api.models.user import User
from booking_api.schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingListPayload,
    BookingResponse,
)
from booking_api.schemas.common import ApiResponse, PageParams, Pagination
from booking_api.services import booking_service
from booking_api.services.cache_service import invalidate_event_cache
from booking_api.services.seat_ledger import SeatLedger

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _page(bookings, params: PageParams, total: int) -> BookingListPayload:
    return BookingListPayload(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        pagination=Pagination.build(params, total),
    )


@router.post("/", response_model=ApiResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user: User = Depends(get_current_user),
    ledger: SeatLedger = Depends(get_ledger),
):
    """
    Reserve tickets for an event.

    The event row is locked for the whole check-and-write, so concurrent
    requests for the last seats are decided one at a time.
    """
    booking = await ledger.reserve(user.id, booking_data.event_id, booking_data.number_of_tickets)
    # available_seats changed
    await invalidate_event_cache()
    return ApiResponse(message="Booking created successfully", data=BookingResponse.model_validate(booking))


@router.get("/mine", response_model=ApiResponse[BookingListPayload])
async def list_my_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the caller's bookings, newest first."""
    params = PageParams(page=page, limit=limit)
    bookings, total = await booking_service.get_user_bookings(db, user.id, params, status_filter)
    return ApiResponse(message="Bookings retrieved successfully", data=_page(bookings, params, total))


@router.get("/", response_model=ApiResponse[BookingListPayload])
async def list_all_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    event_id: Optional[int] = Query(None, ge=1),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    params = PageParams(page=page, limit=limit)
    bookings, total = await booking_service.get_all_bookings(db, params, status_filter, event_id)
    return ApiResponse(message="All bookings retrieved successfully", data=_page(bookings, params, total))


@router.get("/{booking_id}", response_model=ApiResponse[BookingResponse])
async def get_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking(db, booking_id, user)
    return ApiResponse(message="Booking retrieved successfully", data=BookingResponse.model_validate(booking))


@router.put("/{booking_id}/cancel", response_model=ApiResponse[BookingResponse])
async def cancel_booking_endpoint(
    booking_id: int,
    body: Optional[BookingCancel] = None,
    user: User = Depends(get_current_user),
    ledger: SeatLedger = Depends(get_ledger),
):
    """Cancel a booking and release its seats. Closes 24 hours before the event."""
    reason = body.reason if body else None
    booking = await ledger.release(booking_id, user.id, reason)
    await invalidate_event_cache()
    return ApiResponse(message="Booking cancelled successfully", data=BookingResponse.model_validate(booking))
