"""
Translation of domain exceptions into HTTP errors.
"""
from fastapi import HTTPException

from slotwise.utils.errors import BookingRejectedError, NotFoundError, SlotConflictError


def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, SlotConflictError):
        return HTTPException(status_code=409, detail=exc.reason)
    if isinstance(exc, BookingRejectedError):
        return HTTPException(status_code=400, detail=exc.reason)
    return HTTPException(status_code=500, detail="Internal server error")
