"""
Booking model and its lifecycle rules.

A booking is created `confirmed` and may move once to `cancelled`, which is
terminal. `pending` is an allowed column value that no operation produces.

Only one confirmed booking may exist per (user, event). This is a partial
unique index rather than a plain UniqueConstraint so that a user can book
again after cancelling.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship

from booking_api.core.config import get_settings
from booking_api.db.base import Base, TimestampMixin, utc_now

CANCELLATION_WINDOW = get_settings().cancellation_window

# Also baked into the ticket range CHECK; changing it needs a migration.
MAX_TICKETS_PER_BOOKING = 10


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# The only transition in the lifecycle
ALLOWED_TRANSITIONS = {
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.PENDING: set(),
}


def can_transition(current: str, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[BookingStatus(current)]


def can_book(event_date: datetime, now: datetime) -> bool:
    """Bookings are accepted only for events that have not started."""
    return event_date > now


def can_cancel(event_date: datetime, now: datetime) -> bool:
    """Cancellation closes CANCELLATION_WINDOW before the event starts."""
    return event_date - now >= CANCELLATION_WINDOW


_CONFIRMED_ONLY = text("status = 'confirmed'")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    number_of_tickets = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    booking_date = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    cancellation_date = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    # Relationships
    user = relationship("User", back_populates="bookings", lazy="raise")
    event = relationship("Event", back_populates="bookings", lazy="raise")

    __table_args__ = (
        Index(
            "uq_bookings_user_event_confirmed",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=_CONFIRMED_ONLY,
            sqlite_where=_CONFIRMED_ONLY,
        ),
        CheckConstraint(
            f"number_of_tickets >= 1 AND number_of_tickets <= {MAX_TICKETS_PER_BOOKING}",
            name="check_booking_ticket_range",
        ),
        CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'pending')",
            name="check_booking_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
