"""Translate booking errors into HTTP responses."""

from fastapi import HTTPException, status

from seat_booking.exceptions import (
    BookingValidationError,
    ConflictError,
    InvariantViolation,
    NotFoundError,
    PermissionDeniedError,
    SeatBookingError,
    TransientStoreError,
)

_STATUS_BY_ERROR: list[tuple[type[SeatBookingError], int]] = [
    (BookingValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvariantViolation, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def to_http_exception(exc: SeatBookingError) -> HTTPException:
    """Map a domain error to an HTTPException with a code and message."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break

    headers = {"Retry-After": "1"} if isinstance(exc, TransientStoreError) else None
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": exc.message},
        headers=headers,
    )
