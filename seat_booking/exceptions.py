"""Domain errors raised by the booking services."""


class SeatBookingError(Exception):
    """Base class for seat booking errors."""

    code = "seat_booking_error"
    default_message = "Seat booking operation failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BookingValidationError(SeatBookingError):
    """Malformed request, rejected before any write."""

    code = "validation_error"
    default_message = "Invalid booking request."


class ConflictError(SeatBookingError):
    """Expected, user-facing conflict with the current seat state."""

    code = "conflict"
    default_message = "The request conflicts with the current seat state."


class AlreadyHeldByOther(ConflictError):
    code = "already_held_by_other"
    default_message = "Seat is no longer available, please choose another seat."


class AlreadyBooked(ConflictError):
    code = "already_booked"
    default_message = "Seat is already booked, please choose another seat."


class PartyHasActiveBooking(ConflictError):
    code = "party_has_active_booking"
    default_message = "You already have a pending or active booking."


class InvalidBookingState(ConflictError):
    code = "invalid_booking_state"
    default_message = "Booking is not in a state that allows this action."


class NotFoundError(SeatBookingError):
    code = "not_found"
    default_message = "Resource not found."


class SeatNotFound(NotFoundError):
    code = "seat_not_found"
    default_message = "Seat not found."


class BookingNotFound(NotFoundError):
    code = "booking_not_found"
    default_message = "Booking not found."


class HoldNotFound(NotFoundError):
    code = "hold_not_found"
    default_message = "Hold not found."


class PermissionDeniedError(SeatBookingError):
    """Actor may not mutate another party's hold or booking."""

    code = "permission_denied"
    default_message = "You cannot modify another party's booking."


class TransientStoreError(SeatBookingError):
    """Storage or lock backend unavailable; safe to retry."""

    code = "store_unavailable"
    default_message = "Booking store is temporarily unavailable, please try again."


StoreUnavailable = TransientStoreError


class InvariantViolation(SeatBookingError):
    """
    Stored state breaks a rule the store constraints should guarantee,
    e.g. two live holds for one seat. Never swallowed.
    """

    code = "invariant_violation"
    default_message = "Seat booking store invariant violated."
