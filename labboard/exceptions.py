"""Custom exception hierarchy for LabBoard.

Provides structured error types that the centralized error handler
translates into consistent JSON responses.  Guards in ``labboard.rbac``
never raise; these are for handlers and the storage layer.
"""

from __future__ import annotations


class LabBoardError(Exception):
    """Base exception for all LabBoard errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str = "An internal error occurred") -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(LabBoardError):
    """Server is missing required configuration."""

    status_code = 500
    error_type = "configuration_error"


class StorageError(LabBoardError):
    """Document store failure."""

    status_code = 503
    error_type = "storage_error"


class NotFoundError(LabBoardError):
    """Requested resource was not found."""

    status_code = 404
    error_type = "not_found"


class ValidationError(LabBoardError):
    """Input validation failure beyond Pydantic constraints."""

    status_code = 400
    error_type = "validation_error"


class AuthenticationError(LabBoardError):
    """Missing or invalid bearer token."""

    status_code = 401
    error_type = "authentication_error"


class ForbiddenError(LabBoardError):
    """A guard or role check denied the request."""

    status_code = 403
    error_type = "forbidden"


class ConflictError(LabBoardError):
    """Request conflicts with the current state of a resource."""

    status_code = 409
    error_type = "conflict"


class ConcurrentUpdateError(ConflictError):
    """A conditional write lost the race against another writer."""

    error_type = "concurrent_update"
