"""Domain error kinds raised by the service layer.

Each error carries the HTTP status it maps to; ``main.py`` renders all of
them as ``{"error": message}``.
"""
from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Malformed or missing input, detected before any state is touched."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(AppError):
    """Role lacks the permission, or the actor does not own the row."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(AppError):
    """The requested transition is illegal for the record's current status."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, current: str, required: str | tuple[str, ...], action: str):
        if isinstance(required, tuple):
            required_str = " or ".join(required)
        else:
            required_str = required
        super().__init__(
            f"Cannot {action} {entity} with status {current}. Must be {required_str}."
        )
        self.current = current
        self.required = required


class BusinessRuleError(AppError):
    status_code = status.HTTP_409_CONFLICT
