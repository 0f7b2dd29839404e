"""
Base exception classes for the marketplace.
"""


class MarketplaceException(Exception):
    """
    Base exception for all marketplace errors.

    All custom exceptions should inherit from this class (through one of the
    category classes below) so callers can catch every domain error with a
    single handler.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (entity IDs, states, etc.)
        status_code: HTTP-style status the outer surface should answer with
        retryable: Whether the caller may safely repeat the operation
    """

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Optional dict with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation with context."""
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class ValidationException(MarketplaceException):
    """Bad or missing input. Never retried."""
    status_code = 400


class AuthenticationRequiredException(ValidationException):
    """Raised when an operation needs a logged-in requester."""
    status_code = 401

    def __init__(self, operation: str):
        super().__init__(
            f"Authentication required for {operation}",
            details={'operation': operation}
        )
        self.operation = operation


class NotFoundException(MarketplaceException):
    """Entity absent or not owned by the caller."""
    status_code = 404


class ConflictException(MarketplaceException):
    """Entity is already in the requested (or an incompatible) state."""
    status_code = 409


class TransientStoreException(MarketplaceException):
    """Database connectivity failure that survived the retry budget."""
    status_code = 503
    retryable = True

    def __init__(self, operation: str, attempts: int, reason: str):
        super().__init__(
            f"Database unavailable during {operation} after {attempts} attempts",
            details={'operation': operation, 'attempts': attempts, 'reason': reason}
        )
        self.operation = operation
        self.attempts = attempts


class ExternalServiceException(MarketplaceException):
    """Blob store or rendering failure. Not retried automatically."""
    status_code = 502
