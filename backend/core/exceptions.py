"""
Domain exceptions for the scheduling and evaluation core.

Services raise these before touching the database; the routers convert them
with ``to_http_exception`` so clients get a stable ``code`` alongside the
human-readable message.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        detail: Dict[str, Any] = {'message': self.message, 'code': self.code}
        if self.details:
            detail['details'] = self.details
        return HTTPException(status_code=self.status_code, detail=detail)


class ValidationException(DomainException):
    """Input is malformed, out of range or in the past."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictException(DomainException):
    """The requested time collides with existing intervals or bookings."""

    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateException(DomainException):
    """The resource already exists or was modified concurrently."""

    status_code = status.HTTP_409_CONFLICT


class LockedException(DomainException):
    """The resource is sealed and can no longer change."""

    status_code = status.HTTP_423_LOCKED


class ForbiddenException(DomainException):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    status_code = status.HTTP_404_NOT_FOUND
