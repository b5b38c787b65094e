"""Seat booking model."""

import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seat_booking.models.base import Base, new_id

if TYPE_CHECKING:
    from seat_booking.models.seat import Seat


class BookingStatus(str, enum.Enum):
    """Booking status enum."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.APPROVED)


class SeatBooking(Base):
    """
    Request for (pending) or grant of (approved) a seat to a party.

    ``active_party_id`` mirrors ``user_id`` while the booking is pending or
    approved and is NULL once it reaches a terminal status; its unique
    constraint allows one active booking per party.
    """

    __tablename__ = "seat_bookings"

    booking_id: Mapped[str] = mapped_column(String(26), primary_key=True, default=new_id)
    seat_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("seats.seat_id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(50), nullable=False)
    active_party_id: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    duration_months: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    subscription_end_date: Mapped[datetime | None] = mapped_column(DateTime)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime)
    approved_by: Mapped[str | None] = mapped_column(String(50))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime)
    rejected_by: Mapped[str | None] = mapped_column(String(50))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime)
    payment_reference: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    seat: Mapped["Seat"] = relationship("Seat", back_populates="bookings")

    __table_args__ = (
        UniqueConstraint("active_party_id", name="uk_booking_active_party"),
        Index("idx_booking_seat_status", "seat_id", "status"),
        Index("idx_booking_user_id", "user_id"),
        Index("idx_booking_status", "status"),
    )
