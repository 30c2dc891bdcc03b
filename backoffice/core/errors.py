"""Typed failures raised by the service layer.

Each carries the HTTP status it maps to; ``main.py`` renders them as
``{"detail": ...}`` so callers see the same shape as ``HTTPException``.
"""

from fastapi import status


class DomainError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFound(DomainError):
    """Entity missing or soft-deleted within the caller's visible scope."""
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(DomainError):
    """Blocked by a role-authority rule."""
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(DomainError):
    """Uniqueness violation or already in the target state."""
    status_code = status.HTTP_409_CONFLICT


class BadRequest(DomainError):
    """Self-targeting, bad confirmation, bad token, or last-admin removal."""
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
