"""Seat hold model."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seat_booking.models.base import Base, new_id

if TYPE_CHECKING:
    from seat_booking.models.seat import Seat


class SeatHold(Base):
    """
    Time-boxed exclusive claim on a seat backing a pending booking.

    The unique constraint on ``seat_id`` is what decides a race between two
    parties. Lapsed rows are deleted by the sweeper, or by the next acquirer
    inside its own transaction, so the constraint only ever blocks on a hold
    that is still live.
    """

    __tablename__ = "seat_holds"

    hold_id: Mapped[str] = mapped_column(String(26), primary_key=True, default=new_id)
    seat_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("seats.seat_id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(50), nullable=False)
    booking_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("seat_bookings.booking_id")
    )
    held_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    seat: Mapped["Seat"] = relationship("Seat", back_populates="holds")

    __table_args__ = (
        UniqueConstraint("seat_id", name="uk_hold_seat"),
        Index("idx_hold_expires_at", "expires_at"),
        Index("idx_hold_user_id", "user_id"),
        Index("idx_hold_booking_id", "booking_id"),
    )
