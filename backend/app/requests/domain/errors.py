class DomainError(Exception):
    """Base domain error with a user-facing message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class PermissionDenied(DomainError):
    """Raised when the actor's role is below what the operation requires."""


class NotFound(DomainError):
    """Raised when a required entity is missing."""


class InvalidTransition(DomainError):
    """Raised when the requested status change is not a declared edge."""


class ValidationFailed(DomainError):
    """Raised when command input is missing or malformed."""


class QuantityOutOfRange(DomainError):
    """Raised when a receive/return would leave 0 <= received <= ordered."""
