# Domain Exceptions
from .domain_exceptions import (
    DomainException,
    EntityNotFoundException,
    ValidationException,
    LinkError,
    ParseError,
    PersistenceError,
    DispatchError,
)

__all__ = [
    'DomainException',
    'EntityNotFoundException',
    'ValidationException',
    'LinkError',
    'ParseError',
    'PersistenceError',
    'DispatchError',
]
