"""
Seat ledger: the only writer of `events.available_seats`.

CONCURRENCY STRATEGY: Pessimistic row locking
==============================================

Problem:
  Two users try to book the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  Every operation that touches the seat counter runs as one transaction that
  first takes an exclusive lock on the event row (SELECT ... FOR UPDATE) and
  only then reads the counter, checks the rules and writes. A second request
  for the same event blocks on the lock and, once it gets it, sees the
  committed result of the first one.

  Inside one worker process calls for the same event also queue on an
  asyncio.Lock before opening a transaction, so they wait in the event loop
  instead of each holding a pooled connection while blocked in the database.
  The row lock stays the authority across processes.

  SQLite has no row locks and ignores FOR UPDATE. There the transaction is
  opened with BEGIN IMMEDIATE (see db.session.enable_sqlite_write_locks),
  which takes the database write lock before the event is read, so separate
  ledgers, sessions and processes still serialize.

  The lock is per event. Bookings for different events never contend.

  Any failed check raises before anything is written and the transaction
  rolls back, so a rejected call leaves event and booking rows untouched.
  No retries: capacity and timing failures are for the user to act on.

Invariant held at every commit, per event:
  available_seats = total_seats - sum(number_of_tickets of confirmed bookings)
"""

import time
import weakref
from asyncio import Lock
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.attributes import set_committed_value

from booking_api.core.exceptions import (
    BookingAPIError,
    CapacityError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from booking_api.core.logging import get_logger
from booking_api.core.metrics import (
    booking_latency,
    record_booking_attempt,
    record_cancellation_attempt,
    seats_released,
    seats_reserved,
)
from booking_api.db.base import as_utc, utc_now
from booking_api.db.session import WRITE_LOCK
from booking_api.models.booking import (
    CANCELLATION_WINDOW,
    MAX_TICKETS_PER_BOOKING,
    Booking,
    BookingStatus,
    can_book,
    can_cancel,
    can_transition,
)
from booking_api.models.event import Event

logger = get_logger(__name__)

_CENTS = Decimal("0.01")

_OUTCOMES = {
    NotFoundError: "not_found",
    InvalidStateError: "invalid_state",
    ConflictError: "conflict",
    CapacityError: "capacity",
    ValidationError: "invalid",
}


def _outcome(exc: Exception) -> str:
    return _OUTCOMES.get(type(exc), "error")


class SeatLedger:
    """
    Reserve, release and resize seat inventory for events.

    One instance is shared by all requests of a process. It holds no data
    besides the session factory and the in-process lock table.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._locks: "weakref.WeakValueDictionary[int, Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, event_id: int) -> Lock:
        lock = self._locks.get(event_id)
        if lock is None:
            lock = Lock()
            self._locks[event_id] = lock
        return lock

    @asynccontextmanager
    async def _locked_event(self, event_id: int) -> AsyncIterator[tuple[AsyncSession, Optional[Event]]]:
        """
        Open a transaction holding the exclusive lock on one event row.

        Yields the session and the freshly read event (None if the row does
        not exist). Commits on normal exit, rolls back on any exception.
        """
        async with self._lock_for(event_id):
            async with self._session_factory() as session:
                async with session.begin():
                    await session.connection(execution_options={WRITE_LOCK: True})
                    result = await session.execute(
                        select(Event)
                        .where(Event.id == event_id)
                        .with_for_update()
                    )
                    yield session, result.scalar_one_or_none()

    async def reserve(self, user_id: int, event_id: int, ticket_count: int) -> Booking:
        """
        Take `ticket_count` seats on an event for a user.

        Raises NotFoundError, InvalidStateError, ConflictError or
        CapacityError, checked in that order.
        """
        if not 1 <= ticket_count <= MAX_TICKETS_PER_BOOKING:
            raise ValidationError(
                f"Number of tickets must be between 1 and {MAX_TICKETS_PER_BOOKING}",
                details={"number_of_tickets": ticket_count},
            )

        started = time.perf_counter()
        try:
            booking = await self._reserve(user_id, event_id, ticket_count)
        except BookingAPIError as exc:
            record_booking_attempt(_outcome(exc))
            logger.info(
                "booking_rejected",
                user_id=user_id,
                event_id=event_id,
                requested=ticket_count,
                reason=exc.message,
            )
            raise
        except Exception:
            record_booking_attempt("error")
            raise
        finally:
            booking_latency.observe(time.perf_counter() - started)

        record_booking_attempt("success")
        seats_reserved.inc(ticket_count)
        logger.info(
            "booking_created",
            booking_id=booking.id,
            user_id=user_id,
            event_id=event_id,
            seats=ticket_count,
            total_amount=str(booking.total_amount),
        )
        return booking

    async def _reserve(self, user_id: int, event_id: int, ticket_count: int) -> Booking:
        async with self._locked_event(event_id) as (session, event):
            if event is None or not event.is_active:
                raise NotFoundError("Event not found")

            if not can_book(as_utc(event.date), self._clock()):
                raise InvalidStateError("Cannot book tickets for past events")

            existing = await session.execute(
                select(Booking.id).where(
                    Booking.user_id == user_id,
                    Booking.event_id == event_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                )
            )
            if existing.first() is not None:
                raise ConflictError("You already have a confirmed booking for this event")

            if event.available_seats < ticket_count:
                raise CapacityError(requested=ticket_count, available=event.available_seats)

            booking = Booking(
                user_id=user_id,
                event_id=event_id,
                number_of_tickets=ticket_count,
                total_amount=(Decimal(event.price) * ticket_count).quantize(_CENTS),
                status=BookingStatus.CONFIRMED.value,
                booking_date=self._clock(),
            )
            session.add(booking)
            event.available_seats -= ticket_count

            try:
                await session.flush()
            except IntegrityError:
                # The partial unique index caught a confirmed booking the
                # check above could not see (written by another process
                # that did not go through this event's lock).
                raise ConflictError("You already have a confirmed booking for this event")

            set_committed_value(booking, "event", event)
            return booking

    async def release(self, booking_id: int, user_id: int, reason: Optional[str] = None) -> Booking:
        """
        Cancel a user's confirmed booking and return its seats to the event.

        Raises NotFoundError when the booking is missing, owned by someone
        else or not confirmed, and InvalidStateError inside the cancellation
        window.
        """
        try:
            booking = await self._release(booking_id, user_id, reason)
        except BookingAPIError as exc:
            record_cancellation_attempt(_outcome(exc))
            logger.info(
                "cancellation_rejected",
                booking_id=booking_id,
                user_id=user_id,
                reason=exc.message,
            )
            raise
        except Exception:
            record_cancellation_attempt("error")
            raise

        record_cancellation_attempt("success")
        seats_released.inc(booking.number_of_tickets)
        logger.info(
            "booking_cancelled",
            booking_id=booking.id,
            user_id=user_id,
            event_id=booking.event_id,
            seats_restored=booking.number_of_tickets,
        )
        return booking

    async def _release(self, booking_id: int, user_id: int, reason: Optional[str]) -> Booking:
        not_found = NotFoundError("Booking not found or already cancelled")

        # Which event to lock. Read without a lock; re-checked under it below.
        async with self._session_factory() as session:
            event_id = await session.scalar(
                select(Booking.event_id).where(
                    Booking.id == booking_id,
                    Booking.user_id == user_id,
                )
            )
        if event_id is None:
            raise not_found

        async with self._locked_event(event_id) as (session, event):
            result = await session.execute(
                select(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.user_id == user_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                )
                .with_for_update()
            )
            booking = result.scalar_one_or_none()
            if booking is None or event is None:
                raise not_found

            now = self._clock()
            if not can_cancel(as_utc(event.date), now):
                hours = int(CANCELLATION_WINDOW.total_seconds() // 3600)
                raise InvalidStateError(
                    f"Cannot cancel booking less than {hours} hours before the event"
                )

            if not can_transition(booking.status, BookingStatus.CANCELLED):
                raise not_found

            booking.status = BookingStatus.CANCELLED.value
            booking.cancellation_date = now
            booking.cancellation_reason = reason
            event.available_seats += booking.number_of_tickets

            await session.flush()
            set_committed_value(booking, "event", event)
            return booking

    async def resize(self, event_id: int, total_seats: int) -> Event:
        """
        Change an event's capacity, keeping booked seats booked.

        Capacity can only shrink while the event has no confirmed bookings.
        """
        async with self._locked_event(event_id) as (session, event):
            if event is None:
                raise NotFoundError("Event not found")

            if total_seats != event.total_seats:
                confirmed = await self._confirmed_count(session, event_id)
                if confirmed and total_seats < event.total_seats:
                    raise InvalidStateError(
                        "Cannot reduce total seats when there are confirmed bookings"
                    )
                booked = event.booked_seats
                event.total_seats = total_seats
                event.available_seats = total_seats - booked
                await session.flush()
                logger.info(
                    "event_resized",
                    event_id=event_id,
                    total_seats=total_seats,
                    available_seats=event.available_seats,
                )
            return event

    async def retire(self, event_id: int) -> Event:
        """Soft-delete an event that has no confirmed bookings."""
        async with self._locked_event(event_id) as (session, event):
            if event is None or not event.is_active:
                raise NotFoundError("Event not found")

            confirmed = await self._confirmed_count(session, event_id)
            if confirmed:
                raise InvalidStateError(
                    "Cannot delete event with confirmed bookings",
                    details={"confirmed_bookings": confirmed},
                )

            event.is_active = False
            await session.flush()
            logger.info("event_retired", event_id=event_id)
            return event

    @staticmethod
    async def _confirmed_count(session: AsyncSession, event_id: int) -> int:
        return await session.scalar(
            select(func.count(Booking.id)).where(
                Booking.event_id == event_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )
