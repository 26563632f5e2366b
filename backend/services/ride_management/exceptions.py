"""Custom exceptions for ride management."""


class EngineError(Exception):
    """Base class for errors raised by the booking and matching services."""
    error_code = "error"

    def __init__(self, message: str = "", **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(EngineError):
    """Raised when input is missing or malformed. Nothing has been written."""
    error_code = "validation_error"


class NotFoundError(EngineError):
    """Raised when a referenced ride, request, demand or offer cannot be found."""
    error_code = "not_found"


class ForbiddenError(EngineError):
    """Raised when the caller does not own the entity it is acting on."""
    error_code = "forbidden"


class ConflictError(EngineError):
    """Raised when a business rule rejects the operation (seats, state, duplicates, stale version)."""
    error_code = "conflict"


class InternalError(EngineError):
    """Raised when persistence or infrastructure fails."""
    error_code = "internal_error"
