"""
Standardized Error Handling for Palate Collectif

Backend calls raise; pages catch per call site and turn the error into a
toast-style message with user_message().
"""

import logging
from typing import Any, Optional

from postgrest.exceptions import APIError
from pydantic import ValidationError

from palate.constants import UIConstants

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class PalateError(Exception):
    """Base exception for Palate Collectif."""

    default_message = UIConstants.GENERIC_ERROR

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class BackendError(PalateError):
    """A backend query or mutation failed."""
    pass


class DataValidationError(PalateError):
    """Form or row data failed validation."""
    pass


class AuthorizationError(PalateError):
    """The cached identity is missing, expired or lacks the required role."""

    default_message = "You do not have access to this page."


class EventNotFoundError(PalateError):
    """No event matches the given code or id."""

    default_message = "Event not found. Please check the code and try again."


class EventInactiveError(PalateError):
    """The event exists but no longer accepts attendees."""

    default_message = "This event is no longer active."


class DuplicateEventCodeError(PalateError):
    """Another event already uses the requested code."""

    default_message = "This event code is already in use"


class BuddyCodeError(PalateError):
    """A buddy code could not be created or redeemed."""

    default_message = "Invalid or expired buddy code"


def is_unique_violation(error: Exception) -> bool:
    """True when a backend error is a Postgres unique-constraint violation."""
    return isinstance(error, APIError) and str(getattr(error, "code", "")) == UNIQUE_VIOLATION


def raise_backend_error(error: Exception, operation: str) -> None:
    """
    Log a failed backend call and re-raise it as a BackendError.

    Args:
        error: Exception raised by the Supabase client
        operation: Description of operation
    """
    logger.error(f"Backend error during {operation}: {type(error).__name__} - {error}")
    raise BackendError(f"Failed to {operation}") from error


def user_message(error: Exception, fallback: str = UIConstants.GENERIC_ERROR) -> str:
    """
    Map an exception to the message shown to the user.

    PalateError subclasses carry their own message; pydantic validation
    errors list the offending fields; anything else is logged and replaced
    by the generic fallback.
    """
    if isinstance(error, PalateError):
        return error.message

    if isinstance(error, ValidationError):
        fields = []
        for detail in error.errors():
            location = ".".join(str(part) for part in detail.get("loc", ()))
            fields.append(f"{location}: {detail.get('msg', 'invalid value')}")
        return "Please check the form: " + "; ".join(fields)

    logger.exception(f"Unexpected error: {type(error).__name__} - {error}", exc_info=error)
    return fallback


class ErrorContext:
    """Context manager for consistent error handling."""

    def __init__(self, operation: str, fallback_value: Any = None):
        self.operation = operation
        self.fallback_value = fallback_value
        self.error: Optional[Exception] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Streamlit stop/rerun signals are BaseExceptions and always propagate
        if exc_type is not None and issubclass(exc_type, Exception):
            self.error = exc_val
            logger.error(f"Error in {self.operation}: {exc_type.__name__} - {exc_val}")

            # Suppress only when the caller supplied a fallback
            if self.fallback_value is not None:
                return True
        return False

    @property
    def message(self) -> Optional[str]:
        """User-facing message for the captured error, if any."""
        if self.error is None:
            return None
        return user_message(self.error)


__all__ = [
    'PalateError',
    'BackendError',
    'DataValidationError',
    'AuthorizationError',
    'EventNotFoundError',
    'EventInactiveError',
    'DuplicateEventCodeError',
    'BuddyCodeError',
    'is_unique_violation',
    'raise_backend_error',
    'user_message',
    'ErrorContext',
]
