"""
Domain errors for the section subsystem and helpers for reporting them.

Stores and services raise these; the API layer maps them to HTTP status codes
(ValidationError -> 400, NotFoundError -> 404, ConflictError -> 409). The retry
helpers never retry them.
"""

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for section/video data-integrity errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
    ):
        self.message = message
        self.field = field
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Error body returned to API clients."""
        body: Dict[str, Any] = {"detail": self.message}
        if self.field:
            body["field"] = self.field
        if self.resource_type:
            body["resource_type"] = self.resource_type
        if self.resource_id is not None:
            body["resource_id"] = self.resource_id
        return body


class ValidationError(ServiceError):
    """Missing or invalid fields, enum violations, malformed reorder payloads."""

    status_code = 400


class NotFoundError(ServiceError):
    """A section, video, or video-within-section does not exist."""

    status_code = 404


class ConflictError(ServiceError):
    """The video is already placed in the target section."""

    status_code = 409


def truncate_string(value: Optional[str], max_length: int, suffix: str = "...") -> Optional[str]:
    """
    Truncate a string to max_length characters, appending suffix when cut.

    Returns None unchanged so callers can pass optional values straight through.
    """
    if value is None:
        return None
    if len(value) <= max_length:
        return value
    if max_length <= len(suffix):
        return value[:max_length]
    return value[: max_length - len(suffix)] + suffix


def is_unique_violation(exc: Exception) -> bool:
    """
    Check whether an exception is a unique-constraint violation.

    Works on message text so both SQLite ("UNIQUE constraint failed") and
    PostgreSQL ("duplicate key value violates unique constraint") are detected
    through the databases library's wrapping.
    """
    error_str = str(exc).lower()
    if "unique constraint" in error_str or "duplicate key" in error_str:
        return True
    if getattr(exc, "sqlstate", None) == "23505":
        return True
    if exc.__cause__ is not None:
        return is_unique_violation(exc.__cause__)
    return False
