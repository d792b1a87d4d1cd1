"""
Application Exceptions

Services raise these; app.main renders them as JSON with the
matching HTTP status. None of them are retried.
"""

from fastapi import status


class AppError(Exception):
    """Base exception for expected, request-terminal failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Bad request"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(AppError):
    """Unknown resource or account."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ForbiddenError(AppError):
    """Credential/token mismatch or unauthorized action."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access Denied"


class ConflictError(AppError):
    """Duplicate of a unique resource."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class BadRequestError(AppError):
    """Malformed input or violated business rule."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class TooManyRequestsError(AppError):
    """Rate limit window exhausted."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests"
