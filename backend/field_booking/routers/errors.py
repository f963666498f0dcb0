from fastapi import HTTPException, status

from ..domain.errors import BookingError, ConflictError, NotFoundError, PersistenceError, ValidationError

# First match wins; subclasses before their bases.
ERROR_STATUS: list[tuple[type[BookingError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def booking_error_to_http(exc: BookingError) -> HTTPException:
    """Map a domain error to an HTTPException carrying kind, reason and message."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.to_dict())
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.to_dict())
