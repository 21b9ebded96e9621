"""Typed booking errors.

Each error is an ``HTTPException`` so services can raise it directly and
FastAPI renders it with the matching status code. ``kind`` lets clients tell
a slot conflict apart from a disallowed status transition, both of which are
reported as 409.
"""

from fastapi import HTTPException, status


class BookingError(HTTPException):
    kind = 'error'
    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code_default, detail=detail)


class ValidationFailed(BookingError):
    kind = 'validation'
    status_code_default = status.HTTP_400_BAD_REQUEST


class Forbidden(BookingError):
    kind = 'forbidden'
    status_code_default = status.HTTP_403_FORBIDDEN


class NotFound(BookingError):
    kind = 'not_found'
    status_code_default = status.HTTP_404_NOT_FOUND


class Conflict(BookingError):
    kind = 'conflict'
    status_code_default = status.HTTP_409_CONFLICT


class InvalidState(BookingError):
    kind = 'invalid_state'
    status_code_default = status.HTTP_409_CONFLICT
