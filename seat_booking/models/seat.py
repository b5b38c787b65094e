"""Seat model."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from seat_booking.models.base import Base, new_id

if TYPE_CHECKING:
    from seat_booking.models.booking import SeatBooking
    from seat_booking.models.hold import SeatHold


class Seat(Base):
    """Seat in the study library. Reference data, never deleted."""

    __tablename__ = "seats"

    seat_id: Mapped[str] = mapped_column(String(26), primary_key=True, default=new_id)
    seat_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    section: Mapped[str | None] = mapped_column(String(50))
    row_number: Mapped[str | None] = mapped_column(String(10))
    monthly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.current_timestamp()
    )

    # Relationships
    holds: Mapped[list["SeatHold"]] = relationship("SeatHold", back_populates="seat")
    bookings: Mapped[list["SeatBooking"]] = relationship(
        "SeatBooking", back_populates="seat"
    )

    __table_args__ = (
        Index("idx_section_row", "section", "row_number"),
    )
