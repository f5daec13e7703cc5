"""
Administrative user management.
"""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.exceptions import InvalidStateError, NotFoundError
from booking_api.core.logging import get_logger
from booking_api.db.base import utc_now
from booking_api.models.booking import Booking, BookingStatus
from booking_api.models.event import Event
from booking_api.models.user import User, UserRole
from booking_api.schemas.common import PageParams

logger = get_logger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def list_users(
    db: AsyncSession,
    params: PageParams,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
) -> tuple[list[User], int]:
    query = select(User)
    if role is not None:
        query = query.where(User.role == role.value)
    if is_active is not None:
        query = query.where(User.is_active == is_active)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    return list(result.scalars().all()), total


async def update_role(db: AsyncSession, user_id: int, role: UserRole) -> User:
    user = await get_user(db, user_id)
    user.role = role.value
    await db.flush()
    await db.refresh(user)
    logger.info("user_role_updated", user_id=user_id, role=role.value)
    return user


async def toggle_status(db: AsyncSession, user_id: int) -> User:
    user = await get_user(db, user_id)
    user.is_active = not user.is_active
    await db.flush()
    await db.refresh(user)
    logger.info("user_status_toggled", user_id=user_id, is_active=user.is_active)
    return user


async def delete_user(db: AsyncSession, user_id: int) -> None:
    """Delete a user that holds no confirmed bookings and runs no upcoming events."""
    user = await get_user(db, user_id)

    active_bookings = await db.scalar(
        select(func.count(Booking.id)).where(
            Booking.user_id == user_id,
            Booking.status == BookingStatus.CONFIRMED.value,
        )
    )
    if active_bookings:
        raise InvalidStateError("Cannot delete user with active bookings")

    upcoming_events = await db.scalar(
        select(func.count(Event.id)).where(
            Event.creator_id == user_id,
            Event.is_active.is_(True),
            Event.date > utc_now(),
        )
    )
    if upcoming_events:
        raise InvalidStateError("Cannot delete user with upcoming events")

    try:
        async with db.begin_nested():
            await db.execute(delete(User).where(User.id == user.id))
    except IntegrityError:
        # past events or cancelled bookings still reference the row
        raise InvalidStateError(
            "Cannot delete user with booking or event history, deactivate the account instead"
        )
    logger.info("user_deleted", user_id=user_id)
