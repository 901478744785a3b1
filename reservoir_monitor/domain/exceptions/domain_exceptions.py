"""
Domain Exceptions - Custom exceptions for domain-specific errors.
"""
from typing import Any, Dict, Optional


class DomainException(Exception):
    """
    Base exception for all domain-related errors.

    All domain exceptions should inherit from this class to allow
    for consistent error handling across the application.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}


class EntityNotFoundException(DomainException):
    """Raised when a requested entity cannot be found."""

    def __init__(
        self,
        entity_type: str,
        entity_id: Optional[Any] = None,
        message: Optional[str] = None
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        msg = message or f"{entity_type} not found"
        if entity_id:
            msg = f"{entity_type} with id '{entity_id}' not found"
        super().__init__(
            message=msg,
            code='ENTITY_NOT_FOUND',
            details={'entity_type': entity_type, 'entity_id': str(entity_id) if entity_id else None}
        )


class ValidationException(DomainException):
    """
    Raised when domain validation fails.

    Can contain multiple validation errors for different fields.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, list]] = None
    ):
        self.errors = errors or {}
        super().__init__(
            message=message,
            code='VALIDATION_ERROR',
            details={'validation_errors': self.errors}
        )


class LinkError(DomainException):
    """Raised by a telemetry transport when the connection drops or cannot open."""

    def __init__(self, message: str = "Telemetry link error", cause: Optional[BaseException] = None):
        super().__init__(
            message=message,
            code='LINK_ERROR',
            details={'cause': repr(cause) if cause else None}
        )


class ParseError(DomainException):
    """Raised when a raw telemetry payload cannot be turned into a reading."""

    def __init__(self, message: str, payload: Any = None):
        self.payload = payload
        super().__init__(
            message=message,
            code='PARSE_ERROR',
            details={'payload': repr(payload)[:200]}
        )


class PersistenceError(DomainException):
    """Raised when storing or loading alerts or settings fails."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(
            message=message or f"Persistence failure during {operation}",
            code='PERSISTENCE_ERROR',
            details={'operation': operation}
        )


class DispatchError(DomainException):
    """Raised or logged when a notification channel fails to deliver."""

    def __init__(self, channel: str, recipient: str, reason: str):
        self.channel = channel
        self.recipient = recipient
        self.reason = reason
        super().__init__(
            message=f"Delivery via {channel} to {recipient} failed: {reason}",
            code='DISPATCH_ERROR',
            details={'channel': channel, 'recipient': recipient, 'reason': reason}
        )
