"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception.

    Carries one entry per violated rule so callers can map errors to fields.
    """

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[dict[str, Any]] | None = None,
    ):
        """Initialize with 422 status code."""
        self.errors = errors or []
        super().__init__(message, status_code=422)

    @classmethod
    def from_errors(cls, errors: list[dict[str, Any]]) -> "ValidationException":
        """Build an exception whose message joins every field message."""
        return cls(", ".join(error["message"] for error in errors), errors=errors)


class InvalidTransitionException(AppException):
    """Requested status change is not allowed by the lifecycle."""

    def __init__(self, message: str = "Invalid status transition"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class NoOpTransitionException(InvalidTransitionException):
    """Terminal appointment already has the requested status."""

    def __init__(self, message: str = "Appointment already has the requested status"):
        """Initialize with 409 status code."""
        super().__init__(message)


class DataIntegrityException(AppException):
    """Stored data breaks an invariant the database should guarantee."""

    def __init__(self, message: str = "Data integrity violation"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)


class PersistenceException(AppException):
    """The data store rejected or failed to complete an operation."""

    def __init__(self, message: str = "Persistence failure"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class TransportException(AppException):
    """External delivery channel failed."""

    def __init__(self, message: str = "Transport failure"):
        """Initialize with 502 status code."""
        super().__init__(message, status_code=502)
