"""
Domain exceptions raised by the reading services.

Routers never catch these; the handler registered in main.py renders them as
``{"error": {"code": ..., "message": ...}}`` with the mapped status code.
"""
from fastapi import status


class ReadingError(Exception):
    """Base class for reading pipeline errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "reading_error"

    def __init__(self, message: str = "Reading request failed", code: str = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class NotFoundError(ReadingError):
    """Referenced session, book or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidStateError(ReadingError):
    """Operation attempted on a session (or resource) in the wrong state."""

    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state"


class ReadingValidationError(ReadingError):
    """Malformed input, rejected before any mutation."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
