"""
Read side of bookings. These queries take no locks and may trail in-flight
reservations; every write goes through SeatLedger.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from booking_api.core.exceptions import NotFoundError
from booking_api.models.booking import Booking, BookingStatus
from booking_api.models.user import User
from booking_api.schemas.common import PageParams


async def _paginate(db: AsyncSession, query, params: PageParams) -> tuple[list[Booking], int]:
    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.options(selectinload(Booking.event))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    return list(result.scalars().all()), total


async def get_user_bookings(
    db: AsyncSession,
    user_id: int,
    params: PageParams,
    status: Optional[BookingStatus] = None,
) -> tuple[list[Booking], int]:
    """Get a page of one user's bookings, newest first."""
    query = select(Booking).where(Booking.user_id == user_id)
    if status is not None:
        query = query.where(Booking.status == status.value)
    return await _paginate(db, query, params)


async def get_all_bookings(
    db: AsyncSession,
    params: PageParams,
    status: Optional[BookingStatus] = None,
    event_id: Optional[int] = None,
) -> tuple[list[Booking], int]:
    query = select(Booking)
    if status is not None:
        query = query.where(Booking.status == status.value)
    if event_id is not None:
        query = query.where(Booking.event_id == event_id)
    return await _paginate(db, query, params)


async def get_booking(db: AsyncSession, booking_id: int, requester: User) -> Booking:
    """Owners see their own bookings; admins see all. Anything else is a 404."""
    query = (
        select(Booking)
        .options(selectinload(Booking.event))
        .where(Booking.id == booking_id)
    )
    if not requester.is_admin:
        query = query.where(Booking.user_id == requester.id)

    booking = (await db.execute(query)).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking
