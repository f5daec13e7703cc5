"""
Event service handling CRUD operations.

Seat counters are never written here: capacity changes and soft deletes go
through SeatLedger so they serialize with bookings on the same event.
"""

from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError
from booking_api.core.logging import get_logger
from booking_api.db.base import as_utc, utc_now
from booking_api.models.event import Event
from booking_api.models.user import User
from booking_api.schemas.common import PageParams
from booking_api.schemas.event import EventCreate, EventFilters, EventUpdate
from booking_api.services.seat_ledger import SeatLedger

logger = get_logger(__name__)


async def create_event(db: AsyncSession, event_data: EventCreate, creator_id: int) -> Event:
    """Create a new event with full seat availability."""
    if event_data.date <= utc_now():
        raise InvalidStateError("Event date must be in the future")

    event = Event(
        title=event_data.title,
        description=event_data.description,
        date=event_data.date,
        location=event_data.location,
        category=event_data.category,
        image_url=str(event_data.image_url) if event_data.image_url else None,
        total_seats=event_data.total_seats,
        available_seats=event_data.total_seats,  # All seats available initially
        price=event_data.price,
        creator_id=creator_id,
    )
    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, title=event.title, seats=event.total_seats)
    return event


async def get_event(db: AsyncSession, event_id: int, include_inactive: bool = False) -> Event:
    """Get a single event by ID. Soft-deleted events are hidden unless asked for."""
    query = select(Event).where(Event.id == event_id)
    if not include_inactive:
        query = query.where(Event.is_active.is_(True))
    event = (await db.execute(query)).scalar_one_or_none()

    if not event:
        raise NotFoundError("Event not found")
    return event


def _apply_filters(query, filters: EventFilters):
    if filters.category:
        query = query.where(Event.category.ilike(f"%{filters.category}%"))
    if filters.location:
        query = query.where(Event.location.ilike(f"%{filters.location}%"))
    if filters.start_date:
        query = query.where(Event.date >= as_utc(filters.start_date))
    if filters.end_date:
        query = query.where(Event.date <= as_utc(filters.end_date))
    if filters.min_price is not None:
        query = query.where(Event.price >= filters.min_price)
    if filters.max_price is not None:
        query = query.where(Event.price <= filters.max_price)
    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.where(or_(Event.title.ilike(pattern), Event.description.ilike(pattern)))
    return query


async def _paginate(db: AsyncSession, query, params: PageParams, *order_by) -> tuple[list[Event], int]:
    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(*order_by).offset(params.offset).limit(params.limit)
    )
    return list(result.scalars().all()), total


async def list_events(
    db: AsyncSession,
    params: PageParams,
    filters: Optional[EventFilters] = None,
) -> tuple[list[Event], int]:
    """
    List active events, soonest first.
    Uses the ix_events_active_date index for the base filter and ordering.
    """
    query = select(Event).where(Event.is_active.is_(True))
    if filters is not None:
        query = _apply_filters(query, filters)
    return await _paginate(db, query, params, Event.date.asc(), Event.id.asc())


async def list_creator_events(
    db: AsyncSession,
    creator_id: int,
    params: PageParams,
) -> tuple[list[Event], int]:
    query = select(Event).where(Event.creator_id == creator_id)
    return await _paginate(db, query, params, Event.created_at.desc(), Event.id.desc())


def _ensure_can_manage(event: Event, user: User) -> None:
    if event.creator_id != user.id and not user.is_admin:
        raise PermissionDeniedError("You can only manage your own events")


async def update_event(
    db: AsyncSession,
    ledger: SeatLedger,
    event_id: int,
    changes: EventUpdate,
    user: User,
) -> Event:
    """
    Apply a partial update.

    A total_seats change is committed by the ledger first, under the event
    lock; the remaining fields are written afterwards in the request session
    so the two never hold locks on the same row at once.
    """
    event = await get_event(db, event_id, include_inactive=True)
    _ensure_can_manage(event, user)

    updates = changes.model_dump(exclude_unset=True, exclude_none=True)
    total_seats = updates.pop("total_seats", None)
    if "date" in updates and updates["date"] <= utc_now():
        raise InvalidStateError("Event date must be in the future")
    if "image_url" in updates:
        updates["image_url"] = str(updates["image_url"])

    if total_seats is not None:
        await ledger.resize(event_id, total_seats)

    for field, value in updates.items():
        setattr(event, field, value)
    await db.flush()
    await db.refresh(event)

    logger.info("event_updated", event_id=event_id, fields=sorted(changes.model_fields_set))
    return event


async def delete_event(db: AsyncSession, ledger: SeatLedger, event_id: int, user: User) -> None:
    """Soft delete. Refused while the event still has confirmed bookings."""
    event = await get_event(db, event_id)
    _ensure_can_manage(event, user)
    await ledger.retire(event_id)
